"""Core functionality for nus_tools.

This module provides the content verification engine and the
functionality shared across the package:
- Configuration management
- Type definitions
- Integrity errors and reports
- Hash tree verification
"""

from nus_tools.core.integrity import (
    FileAccessError,
    HashChainMismatch,
    IntegrityError,
    IntegrityReport,
    KeyDerivationError,
    RootDigestMismatch,
)
from nus_tools.core.types import (
    ContentDescriptor,
    ContentType,
    EncryptedKeyMaterial,
    HashLevel,
)
from nus_tools.core.verifier import ChunkHashTreeVerifier, verify_content

__all__ = [
    # Types
    "ContentDescriptor",
    "ContentType",
    "EncryptedKeyMaterial",
    "HashLevel",
    # Errors and reports
    "IntegrityError",
    "KeyDerivationError",
    "FileAccessError",
    "RootDigestMismatch",
    "HashChainMismatch",
    "IntegrityReport",
    # Verification
    "ChunkHashTreeVerifier",
    "verify_content",
]
