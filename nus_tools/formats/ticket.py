"""Ticket parser.

The ticket carries the title key, encrypted with the common key, for
one title ID. Only the fields needed for key derivation are decoded;
the remainder of the ticket is kept verbatim.
"""

from __future__ import annotations

import struct
from io import BytesIO
from typing import BinaryIO

import structlog
from pydantic import BaseModel, Field

from nus_tools.core.types import EncryptedKeyMaterial
from nus_tools.formats.base import (
    FormatParser,
    SignatureBlock,
    decode_issuer,
    encode_issuer,
)

logger = structlog.get_logger()

BODY_FORMAT = '>60sBBB16sBQI8sHH'
BODY_SIZE = 0x40 + struct.calcsize(BODY_FORMAT)  # issuer + fields


class Ticket(BaseModel):
    """Ticket structure."""

    signature: SignatureBlock = Field(default_factory=SignatureBlock, description="Signature block")
    issuer: str = Field(default="Root-CA00000003-XS0000000c", description="Issuer")
    ecdh_data: bytes = Field(default=bytes(0x3C), description="ECDH public key")
    version: int = Field(default=1, description="Ticket format version")
    ca_crl_version: int = Field(default=0, description="CA CRL version")
    signer_crl_version: int = Field(default=0, description="Signer CRL version")
    encrypted_title_key: bytes = Field(description="Title key encrypted with the common key")
    ticket_id: int = Field(default=0, description="Ticket ID")
    console_id: int = Field(default=0, description="Console ID")
    title_id: bytes = Field(description="Title ID (8 bytes)")
    title_version: int = Field(default=0, description="Title version")
    trailer: bytes = Field(default=b"", description="Remaining ticket data")

    @property
    def title_id_hex(self) -> str:
        """Title ID as upper-case hex."""
        return self.title_id.hex().upper()

    def key_material(self) -> EncryptedKeyMaterial:
        """Key material for title key derivation."""
        return EncryptedKeyMaterial(
            title_id=self.title_id,
            encrypted_key=self.encrypted_title_key,
        )


class TicketParser(FormatParser[Ticket]):
    """Parser for tickets."""

    def parse(self, data: bytes | BinaryIO) -> Ticket:
        """Parse a ticket.

        Args:
            data: Binary data or stream

        Returns:
            Parsed ticket

        Raises:
            ValueError: If the data is truncated or malformed
        """
        if not isinstance(data, bytes):
            data = data.read()

        signature = SignatureBlock.parse(data)
        offset = signature.size

        if len(data) < offset + BODY_SIZE:
            raise ValueError("Insufficient data for ticket body")

        issuer = decode_issuer(data[offset:offset + 0x40])
        (
            ecdh_data, version, ca_crl_version, signer_crl_version,
            encrypted_title_key, _, ticket_id, console_id, title_id, _,
            title_version,
        ) = struct.unpack_from(BODY_FORMAT, data, offset + 0x40)

        logger.debug("Parsed ticket",
                    title_id=title_id.hex(), ticket_id=ticket_id,
                    title_version=title_version)

        return Ticket(
            signature=signature,
            issuer=issuer,
            ecdh_data=ecdh_data,
            version=version,
            ca_crl_version=ca_crl_version,
            signer_crl_version=signer_crl_version,
            encrypted_title_key=encrypted_title_key,
            ticket_id=ticket_id,
            console_id=console_id,
            title_id=title_id,
            title_version=title_version,
            trailer=data[offset + BODY_SIZE:],
        )

    def build(self, obj: Ticket) -> bytes:
        """Build a ticket.

        Args:
            obj: Ticket to build

        Returns:
            Binary ticket data
        """
        if len(obj.title_id) != 8:
            raise ValueError(f"Title ID must be 8 bytes, got {len(obj.title_id)}")
        if len(obj.encrypted_title_key) != 16:
            raise ValueError(
                f"Encrypted title key must be 16 bytes, got {len(obj.encrypted_title_key)}"
            )

        result = BytesIO()
        result.write(obj.signature.build())
        result.write(encode_issuer(obj.issuer))
        result.write(struct.pack(
            BODY_FORMAT,
            obj.ecdh_data, obj.version, obj.ca_crl_version,
            obj.signer_crl_version, obj.encrypted_title_key, 0,
            obj.ticket_id, obj.console_id, obj.title_id, 0, obj.title_version,
        ))
        result.write(obj.trailer)
        return result.getvalue()


class TicketBuilder:
    """Builder for ticket files."""

    def build(self, obj: Ticket) -> bytes:
        """Build ticket file from object."""
        return TicketParser().build(obj)

    @classmethod
    def create(cls, title_id: bytes, encrypted_title_key: bytes) -> Ticket:
        """Create an unsigned ticket for a title."""
        return Ticket(title_id=title_id, encrypted_title_key=encrypted_title_key)
