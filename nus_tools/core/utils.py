"""Shared utilities for nus-tools."""

from __future__ import annotations

import hashlib


def hexlify(data: bytes, upper: bool = False) -> str:
    """Convert bytes to hex string.

    Args:
        data: Binary data to convert
        upper: Use uppercase hex if True, lowercase if False

    Returns:
        Hex string representation of the data

    Example:
        >>> hexlify(b"hello")
        '68656c6c6f'
        >>> hexlify(b"hello", upper=True)
        '68656C6C6F'
    """
    result = data.hex()
    return result.upper() if upper else result


def unhexlify(hex_str: str) -> bytes:
    """Convert hex string to bytes.

    A leading ``0x`` is accepted.

    Raises:
        ValueError: If hex_str contains invalid hex characters

    Example:
        >>> unhexlify('0x68656c6c6f')
        b'hello'
    """
    if hex_str[:2].lower() == "0x":
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def compute_sha1(data: bytes) -> bytes:
    """Compute SHA-1 hash.

    Args:
        data: Input data to hash

    Returns:
        20-byte SHA-1 digest

    Example:
        >>> compute_sha1(b"hello").hex()
        'aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d'
    """
    return hashlib.sha1(data).digest()


def format_size(size: int) -> str:
    """Format byte size as human-readable string.

    Example:
        >>> format_size(1024)
        '1.0 KB'
        >>> format_size(65536)
        '64.0 KB'
    """
    if size < 0:
        return "0 B"

    size_float = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_float < 1024.0:
            if unit == "B":
                return f"{int(size_float)} {unit}"
            return f"{size_float:.1f} {unit}"
        size_float /= 1024.0
    return f"{size_float:.1f} PB"


def validate_hash_string(hash_str: str, size: int | None = None) -> bool:
    """Validate hex hash string.

    Args:
        hash_str: Hash string to validate
        size: Required length in bytes, or None for any length

    Returns:
        True if valid hex string, False otherwise

    Example:
        >>> validate_hash_string("deadbeef")
        True
        >>> validate_hash_string("deadbeef", size=16)
        False
        >>> validate_hash_string("invalid")
        False
    """
    if not hash_str or hash_str != hash_str.strip() or ' ' in hash_str or '\t' in hash_str:
        return False
    try:
        data = bytes.fromhex(hash_str)
    except ValueError:
        return False
    return size is None or len(data) == size
