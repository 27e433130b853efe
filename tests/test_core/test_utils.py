"""Tests for nus_tools.core.utils module."""

import pytest

from nus_tools.core.utils import (
    compute_sha1,
    format_size,
    hexlify,
    unhexlify,
    validate_hash_string,
)


class TestHexConversion:
    """Test hexlify and unhexlify."""

    def test_hexlify(self):
        """Test lower and upper case output."""
        assert hexlify(b"\x00\xab") == "00ab"
        assert hexlify(b"\x00\xab", upper=True) == "00AB"

    def test_unhexlify(self):
        """Test plain and prefixed input."""
        assert unhexlify("00ab") == b"\x00\xab"
        assert unhexlify("0x00ab") == b"\x00\xab"
        assert unhexlify("0X00AB") == b"\x00\xab"

    def test_unhexlify_invalid(self):
        """Test invalid characters raise."""
        with pytest.raises(ValueError):
            unhexlify("xyz")


class TestComputeSha1:
    """Test compute_sha1 function."""

    def test_known_digest(self):
        """Test a known SHA-1 digest."""
        assert compute_sha1(b"hello").hex() == "aaf4c61ddcc5e8a2dabede0f3b482cd9aea9434d"

    def test_digest_size(self):
        """Test digests are 20 bytes."""
        assert len(compute_sha1(b"")) == 20


class TestFormatSize:
    """Test format_size function."""

    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (-1, "0 B"),
            (0, "0 B"),
            (1023, "1023 B"),
            (1024, "1.0 KB"),
            (0x10000, "64.0 KB"),
            (256 * 1024 * 1024, "256.0 MB"),
        ],
    )
    def test_sizes(self, size, expected):
        """Test unit selection."""
        assert format_size(size) == expected


class TestValidateHashString:
    """Test validate_hash_string function."""

    def test_valid(self):
        """Test valid hex strings."""
        assert validate_hash_string("deadbeef")
        assert validate_hash_string("DEADBEEF")

    def test_invalid(self):
        """Test invalid hex strings."""
        assert not validate_hash_string("")
        assert not validate_hash_string("xyz")
        assert not validate_hash_string(" deadbeef")
        assert not validate_hash_string("dead beef")

    def test_size(self):
        """Test the byte length requirement."""
        assert validate_hash_string("00" * 16, size=16)
        assert not validate_hash_string("00" * 15, size=16)
