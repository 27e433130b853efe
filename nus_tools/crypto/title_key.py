"""Title key derivation.

The ticket carries the title key encrypted with the console common key.
Decryption is AES-128-CBC with the title ID, zero padded to 16 bytes,
as the IV.
"""

from __future__ import annotations

import structlog
from Crypto.Cipher import AES  # type: ignore[import-untyped]

from nus_tools.core.integrity import KeyDerivationError
from nus_tools.core.types import EncryptedKeyMaterial

logger = structlog.get_logger()

COMMON_KEY = bytes.fromhex("d7b00402659ba2abd2cb0db27fa2b656")

TITLE_ID_SIZE = 8
TITLE_KEY_SIZE = 16


def derive_title_key(
    material: EncryptedKeyMaterial, common_key: bytes = COMMON_KEY
) -> bytes:
    """Decrypt the title key for a title.

    Args:
        material: Title ID and encrypted title key
        common_key: Shared 16-byte common key

    Returns:
        16-byte content key

    Raises:
        KeyDerivationError: If the key material is malformed or the
            cipher cannot be created
    """
    if len(material.encrypted_key) != TITLE_KEY_SIZE:
        raise KeyDerivationError(
            f"Encrypted title key must be {TITLE_KEY_SIZE} bytes, "
            f"got {len(material.encrypted_key)}",
            expected=TITLE_KEY_SIZE,
            actual=len(material.encrypted_key),
        )
    if len(material.title_id) != TITLE_ID_SIZE:
        raise KeyDerivationError(
            f"Title ID must be {TITLE_ID_SIZE} bytes, got {len(material.title_id)}",
            expected=TITLE_ID_SIZE,
            actual=len(material.title_id),
        )
    if len(common_key) != AES.block_size:
        raise KeyDerivationError(
            f"Common key must be {AES.block_size} bytes, got {len(common_key)}",
            expected=AES.block_size,
            actual=len(common_key),
        )

    iv = material.title_id + bytes(AES.block_size - TITLE_ID_SIZE)
    try:
        cipher = AES.new(common_key, AES.MODE_CBC, iv=iv)
    except ValueError as e:
        raise KeyDerivationError(f"Failed to create AES cipher: {e}") from e

    title_key = cipher.decrypt(material.encrypted_key)
    logger.debug("title_key_derived", title_id=material.title_id_hex)
    return title_key


class TitleKeyDecryptor:
    """Derives title keys with a fixed common key.

    Args:
        common_key: Shared 16-byte common key
    """

    def __init__(self, common_key: bytes = COMMON_KEY):
        self.common_key = common_key

    def derive_key(self, material: EncryptedKeyMaterial) -> bytes:
        """Derive the content key for a title."""
        return derive_title_key(material, self.common_key)
