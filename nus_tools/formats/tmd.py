"""Title metadata (TMD) parser.

The TMD lists every content of a title with its size, type flags and
hash. For hashed contents the hash is the SHA-1 of the ``.h3`` tree
file, stored in the first 20 bytes of a 32-byte field.
"""

from __future__ import annotations

import hashlib
import struct
from io import BytesIO
from typing import BinaryIO

import structlog
from pydantic import BaseModel, Field

from nus_tools.core.types import ContentDescriptor, ContentType
from nus_tools.formats.base import (
    FormatParser,
    SignatureBlock,
    decode_issuer,
    encode_issuer,
)

logger = structlog.get_logger()

HEADER_FORMAT = '>BBBBQ8sIH62sIHHHH32s'
HEADER_SIZE = 0x40 + struct.calcsize(HEADER_FORMAT)  # issuer + fields
INFO_RECORD_FORMAT = '>HH32s'
INFO_RECORD_SIZE = struct.calcsize(INFO_RECORD_FORMAT)
INFO_RECORD_COUNT = 64
CHUNK_RECORD_FORMAT = '>IHHQ32s'
CHUNK_RECORD_SIZE = struct.calcsize(CHUNK_RECORD_FORMAT)


class TMDContent(BaseModel):
    """Content chunk record."""

    content_id: int = Field(description="Content ID")
    index: int = Field(description="Content index")
    content_type: int = Field(description="Content type flags")
    size: int = Field(description="Content size in bytes")
    hash: bytes = Field(description="Content hash (32 bytes, SHA-1 zero padded)")

    @property
    def id_hex(self) -> str:
        """Content ID as used in file names."""
        return f"{self.content_id:08x}"

    @property
    def is_hashed(self) -> bool:
        """Whether the content has a hash tree."""
        return bool(self.content_type & ContentType.HASHED)

    def to_descriptor(self) -> ContentDescriptor:
        """Convert to a descriptor for verification."""
        return ContentDescriptor(
            id=self.id_hex,
            size=self.size,
            root_digest=self.hash[:20],
            index=self.index,
            content_type=self.content_type,
        )


class TMDFile(BaseModel):
    """Complete title metadata structure."""

    signature: SignatureBlock = Field(default_factory=SignatureBlock, description="Signature block")
    issuer: str = Field(default="Root-CA00000003-CP0000000b", description="Issuer")
    version: int = Field(default=1, description="TMD format version")
    ca_crl_version: int = Field(default=0, description="CA CRL version")
    signer_crl_version: int = Field(default=0, description="Signer CRL version")
    system_version: int = Field(default=0, description="Required system version")
    title_id: bytes = Field(description="Title ID (8 bytes)")
    title_type: int = Field(default=0, description="Title type")
    group_id: int = Field(default=0, description="Group ID")
    reserved: bytes = Field(default=bytes(62), description="Reserved header bytes")
    access_rights: int = Field(default=0, description="Access rights")
    title_version: int = Field(default=0, description="Title version")
    boot_index: int = Field(default=0, description="Boot content index")
    contents: list[TMDContent] = Field(default_factory=list, description="Content records")
    certificates: bytes = Field(default=b"", description="Trailing certificate chain")

    @property
    def title_id_hex(self) -> str:
        """Title ID as upper-case hex."""
        return self.title_id.hex().upper()

    def content_descriptors(self) -> list[ContentDescriptor]:
        """Descriptors for every content, in TMD order."""
        return [content.to_descriptor() for content in self.contents]


class TMDParser(FormatParser[TMDFile]):
    """Parser for title metadata."""

    def parse(self, data: bytes | BinaryIO) -> TMDFile:
        """Parse title metadata.

        Args:
            data: Binary data or stream

        Returns:
            Parsed title metadata

        Raises:
            ValueError: If the data is truncated or malformed
        """
        if not isinstance(data, bytes):
            data = data.read()

        signature = SignatureBlock.parse(data)
        offset = signature.size

        if len(data) < offset + HEADER_SIZE:
            raise ValueError("Insufficient data for TMD header")

        issuer = decode_issuer(data[offset:offset + 0x40])
        (
            version, ca_crl_version, signer_crl_version, _,
            system_version, title_id, title_type, group_id, reserved,
            access_rights, title_version, content_count, boot_index, _,
            info_hash,
        ) = struct.unpack_from(HEADER_FORMAT, data, offset + 0x40)
        offset += HEADER_SIZE

        info_size = INFO_RECORD_SIZE * INFO_RECORD_COUNT
        if len(data) < offset + info_size:
            raise ValueError("Insufficient data for content info records")
        info_records = data[offset:offset + info_size]
        if hashlib.sha256(info_records).digest() != info_hash:
            logger.warning("tmd_info_hash_mismatch", title_id=title_id.hex())
        offset += info_size

        logger.debug("Parsed TMD header",
                    title_id=title_id.hex(), title_version=title_version,
                    content_count=content_count)

        chunk_size = CHUNK_RECORD_SIZE * content_count
        if len(data) < offset + chunk_size:
            raise ValueError(
                f"Insufficient data for {content_count} content records"
            )

        contents: list[TMDContent] = []
        for _ in range(content_count):
            content_id, index, content_type, size, content_hash = struct.unpack_from(
                CHUNK_RECORD_FORMAT, data, offset
            )
            contents.append(TMDContent(
                content_id=content_id,
                index=index,
                content_type=content_type,
                size=size,
                hash=content_hash,
            ))
            offset += CHUNK_RECORD_SIZE

        return TMDFile(
            signature=signature,
            issuer=issuer,
            version=version,
            ca_crl_version=ca_crl_version,
            signer_crl_version=signer_crl_version,
            system_version=system_version,
            title_id=title_id,
            title_type=title_type,
            group_id=group_id,
            reserved=reserved,
            access_rights=access_rights,
            title_version=title_version,
            boot_index=boot_index,
            contents=contents,
            certificates=data[offset:],
        )

    def build(self, obj: TMDFile) -> bytes:
        """Build title metadata.

        A single content info record covering every content record
        is written, with the header hash computed over all records.

        Args:
            obj: Title metadata to build

        Returns:
            Binary TMD data
        """
        if len(obj.title_id) != 8:
            raise ValueError(f"Title ID must be 8 bytes, got {len(obj.title_id)}")

        chunk_records = BytesIO()
        for content in obj.contents:
            chunk_records.write(struct.pack(
                CHUNK_RECORD_FORMAT,
                content.content_id,
                content.index,
                content.content_type,
                content.size,
                content.hash.ljust(32, b'\x00'),
            ))
        chunk_data = chunk_records.getvalue()

        info_records = bytearray(INFO_RECORD_SIZE * INFO_RECORD_COUNT)
        if obj.contents:
            struct.pack_into(
                INFO_RECORD_FORMAT, info_records, 0,
                0, len(obj.contents), hashlib.sha256(chunk_data).digest(),
            )
        info_hash = hashlib.sha256(info_records).digest()

        result = BytesIO()
        result.write(obj.signature.build())
        result.write(encode_issuer(obj.issuer))
        result.write(struct.pack(
            HEADER_FORMAT,
            obj.version, obj.ca_crl_version, obj.signer_crl_version, 0,
            obj.system_version, obj.title_id, obj.title_type, obj.group_id,
            obj.reserved, obj.access_rights, obj.title_version,
            len(obj.contents), obj.boot_index, 0, info_hash,
        ))
        result.write(info_records)
        result.write(chunk_data)
        result.write(obj.certificates)
        return result.getvalue()


class TMDBuilder:
    """Builder for title metadata files."""

    def build(self, obj: TMDFile) -> bytes:
        """Build TMD file from object."""
        return TMDParser().build(obj)

    @classmethod
    def create_with_contents(
        cls,
        title_id: bytes,
        contents: list[TMDContent],
        title_version: int = 0,
    ) -> TMDFile:
        """Create title metadata for the given contents.

        Args:
            title_id: Title ID (8 bytes)
            contents: Content records
            title_version: Title version

        Returns:
            Title metadata object with an empty signature
        """
        return TMDFile(
            title_id=title_id,
            title_version=title_version,
            contents=contents,
        )


def is_tmd(data: bytes) -> bool:
    """Check if data appears to be title metadata.

    Args:
        data: Data to check

    Returns:
        True if the signature block parses and the header fits
    """
    try:
        signature = SignatureBlock.parse(data)
    except ValueError:
        return False
    return len(data) >= signature.size + HEADER_SIZE
