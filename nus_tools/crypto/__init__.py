"""Cryptographic functions for title packages."""

from __future__ import annotations

from nus_tools.crypto.title_key import COMMON_KEY, TitleKeyDecryptor, derive_title_key

__all__ = ["COMMON_KEY", "TitleKeyDecryptor", "derive_title_key"]
