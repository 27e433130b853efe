"""Base classes for title metadata parsers."""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO, Generic, TypeVar

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)

# signature type -> (signature size, padding size)
SIGNATURE_LAYOUTS: dict[int, tuple[int, int]] = {
    0x00010000: (0x200, 0x3C),  # RSA-4096 SHA-1
    0x00010001: (0x100, 0x3C),  # RSA-2048 SHA-1
    0x00010002: (0x3C, 0x40),   # ECDSA SHA-1
    0x00010003: (0x200, 0x3C),  # RSA-4096 SHA-256
    0x00010004: (0x100, 0x3C),  # RSA-2048 SHA-256
    0x00010005: (0x3C, 0x40),   # ECDSA SHA-256
}


class SignatureBlock(BaseModel):
    """Signature that prefixes tickets and title metadata."""

    signature_type: int = Field(default=0x00010004, description="Signature type")
    signature: bytes = Field(default=bytes(0x100), description="Signature bytes")

    @property
    def size(self) -> int:
        """Size of the block including type and padding."""
        sig_size, pad_size = SIGNATURE_LAYOUTS[self.signature_type]
        return 4 + sig_size + pad_size

    @classmethod
    def parse(cls, data: bytes) -> SignatureBlock:
        """Parse the signature block at the start of data.

        Raises:
            ValueError: If the signature type is unknown or data is short
        """
        if len(data) < 4:
            raise ValueError("Insufficient data for signature type")
        signature_type = struct.unpack('>I', data[0:4])[0]
        if signature_type not in SIGNATURE_LAYOUTS:
            raise ValueError(f"Unknown signature type: 0x{signature_type:08x}")

        sig_size, pad_size = SIGNATURE_LAYOUTS[signature_type]
        if len(data) < 4 + sig_size + pad_size:
            raise ValueError("Insufficient data for signature")
        return cls(signature_type=signature_type, signature=data[4:4 + sig_size])

    def build(self) -> bytes:
        """Serialize the block, zero padded."""
        sig_size, pad_size = SIGNATURE_LAYOUTS[self.signature_type]
        if len(self.signature) != sig_size:
            raise ValueError(
                f"Signature must be {sig_size} bytes for type "
                f"0x{self.signature_type:08x}, got {len(self.signature)}"
            )
        return struct.pack('>I', self.signature_type) + self.signature + bytes(pad_size)


def decode_issuer(data: bytes) -> str:
    """Decode a NUL padded issuer string."""
    return data.split(b'\x00', 1)[0].decode('ascii', errors='replace')


def encode_issuer(issuer: str, size: int = 0x40) -> bytes:
    """Encode an issuer string, NUL padded to size."""
    raw = issuer.encode('ascii')
    if len(raw) > size:
        raise ValueError(f"Issuer longer than {size} bytes: {issuer}")
    return raw.ljust(size, b'\x00')


class FormatParser(ABC, Generic[T]):
    """Base class for format parsers."""

    @abstractmethod
    def parse(self, data: bytes | BinaryIO) -> T:
        """Parse binary data.

        Args:
            data: Binary data or stream

        Returns:
            Parsed format object
        """
        ...

    def parse_file(self, path: str | Path) -> T:
        """Parse format from file.

        Raises:
            ValueError: If the file cannot be read or parsed
        """
        try:
            with open(path, "rb") as f:
                return self.parse(f)
        except OSError as e:
            logger.error("Failed to read file", path=str(path), error=str(e))
            raise ValueError(f"Cannot read file {path}: {e}") from e

    @abstractmethod
    def build(self, obj: T) -> bytes:
        """Build binary data from object."""
        ...

    def validate(self, data: bytes) -> tuple[bool, str]:
        """Validate format data by round-tripping it.

        Returns:
            Tuple of (is_valid, error_message)
        """
        try:
            obj = self.parse(data)
            rebuilt = self.build(obj)
            if data != rebuilt:
                return False, "Round-trip validation failed"
            return True, "Valid"
        except ValueError as e:
            return False, str(e)
