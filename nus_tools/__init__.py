"""NUS Tools - Python tools for verifying encrypted title packages.

This package verifies title contents downloaded from the title CDN:
title keys are decrypted from the ticket, and every content chunk is
checked against its hash tree before the content is trusted.

Key modules:
- core: Verification engine, config, types
- crypto: Title key derivation
- formats: Title metadata and ticket parsers
- commands: CLI command implementations
"""

__version__ = "0.1.0"
__author__ = "nus-tools Team"

# Re-export commonly used types and functions
from nus_tools.core.integrity import IntegrityError, IntegrityReport
from nus_tools.core.types import ContentDescriptor, EncryptedKeyMaterial
from nus_tools.core.verifier import ChunkHashTreeVerifier
from nus_tools.crypto.title_key import TitleKeyDecryptor, derive_title_key

__all__ = [
    "__version__",
    "__author__",
    "ChunkHashTreeVerifier",
    "ContentDescriptor",
    "EncryptedKeyMaterial",
    "IntegrityError",
    "IntegrityReport",
    "TitleKeyDecryptor",
    "derive_title_key",
]
