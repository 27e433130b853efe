"""Core type definitions for nus_tools."""

from enum import IntEnum, IntFlag

from pydantic import BaseModel, ConfigDict, Field


class ContentType(IntFlag):
    """TMD content type flags."""
    ENCRYPTED = 0x0001
    HASHED = 0x0002
    CONTENT = 0x2000
    OPTIONAL = 0x4000
    SHARED = 0x8000


class HashLevel(IntEnum):
    """Levels of the content hash tree.

    L0 digests cover payload blocks, L3 digests live in the ``.h3``
    tree file. Every other level is stored in the chunk header.
    """
    L0 = 0
    L1 = 1
    L2 = 2
    L3 = 3


class ContentDescriptor(BaseModel):
    """A single content of a title, as declared by title metadata."""
    id: str = Field(..., min_length=1, description="Content identifier (file stem)")
    size: int = Field(..., ge=0, description="Content size in bytes")
    root_digest: bytes = Field(
        ..., min_length=8, description="Reference digest of the tree file"
    )
    index: int | None = Field(None, ge=0, description="Content index")
    content_type: int | None = Field(None, ge=0, description="TMD content type flags")

    model_config = ConfigDict(frozen=True)

    @property
    def is_hashed(self) -> bool:
        """Whether the content carries an embedded hash tree.

        Descriptors built without TMD flags are assumed hashed.
        """
        if self.content_type is None:
            return True
        return bool(self.content_type & ContentType.HASHED)

    @property
    def app_name(self) -> str:
        """File name of the encrypted content."""
        return f"{self.id}.app"

    @property
    def h3_name(self) -> str:
        """File name of the tree file."""
        return f"{self.id}.h3"


class EncryptedKeyMaterial(BaseModel):
    """Encrypted title key and the title it belongs to."""
    title_id: bytes = Field(..., description="Title ID (8 bytes, big-endian)")
    encrypted_key: bytes = Field(..., description="Encrypted title key (16 bytes)")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_hex(cls, title_id: str, encrypted_key: str) -> "EncryptedKeyMaterial":
        """Build key material from hex strings.

        Args:
            title_id: Title ID as hex, with or without a ``0x`` prefix
            encrypted_key: Encrypted title key as hex

        Returns:
            Key material

        Raises:
            ValueError: If either value is not valid hex
        """
        if title_id.lower().startswith("0x"):
            title_id = title_id[2:]
        return cls(
            title_id=bytes.fromhex(title_id.zfill(16)),
            encrypted_key=bytes.fromhex(encrypted_key),
        )

    @property
    def title_id_hex(self) -> str:
        """Title ID as upper-case hex."""
        return self.title_id.hex().upper()
