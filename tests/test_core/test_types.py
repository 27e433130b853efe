"""Tests for nus_tools.core.types module."""

import pytest
from pydantic import ValidationError

from nus_tools.core.types import (
    ContentDescriptor,
    ContentType,
    EncryptedKeyMaterial,
    HashLevel,
)


class TestContentType:
    """Test ContentType flags."""

    def test_values(self):
        """Test flag values."""
        assert ContentType.ENCRYPTED == 0x0001
        assert ContentType.HASHED == 0x0002
        assert ContentType.CONTENT == 0x2000

    def test_combination(self):
        """Test typical hashed content flags."""
        flags = ContentType.ENCRYPTED | ContentType.HASHED | ContentType.CONTENT
        assert flags == 0x2003


class TestHashLevel:
    """Test HashLevel enum."""

    def test_ordering(self):
        """Test levels order from leaves to root."""
        assert list(HashLevel) == [HashLevel.L0, HashLevel.L1, HashLevel.L2, HashLevel.L3]
        assert HashLevel.L3.name == "L3"


class TestContentDescriptor:
    """Test ContentDescriptor model."""

    def test_file_names(self):
        """Test content and tree file names."""
        descriptor = ContentDescriptor(id="0000000a", size=0x10000, root_digest=bytes(20))
        assert descriptor.app_name == "0000000a.app"
        assert descriptor.h3_name == "0000000a.h3"

    def test_short_root_digest(self):
        """Test root digests under 8 bytes are rejected."""
        with pytest.raises(ValidationError):
            ContentDescriptor(id="00000000", size=0, root_digest=bytes(7))

    def test_negative_size(self):
        """Test negative sizes are rejected."""
        with pytest.raises(ValidationError):
            ContentDescriptor(id="00000000", size=-1, root_digest=bytes(8))

    def test_is_hashed(self):
        """Test the hash-tree flag."""
        hashed = ContentDescriptor(id="0", size=0, root_digest=bytes(8), content_type=0x2003)
        plain = ContentDescriptor(id="1", size=0, root_digest=bytes(8), content_type=0x2001)
        untyped = ContentDescriptor(id="2", size=0, root_digest=bytes(8))

        assert hashed.is_hashed
        assert not plain.is_hashed
        assert untyped.is_hashed

    def test_frozen(self):
        """Test descriptors are immutable."""
        descriptor = ContentDescriptor(id="00000000", size=0, root_digest=bytes(8))
        with pytest.raises(ValidationError):
            descriptor.id = "00000001"


class TestEncryptedKeyMaterial:
    """Test EncryptedKeyMaterial model."""

    def test_from_hex(self):
        """Test construction from hex strings."""
        material = EncryptedKeyMaterial.from_hex(
            "0005000010040200", "0123456789abcdeffedcba9876543210"
        )
        assert material.title_id == bytes.fromhex("0005000010040200")
        assert material.encrypted_key == bytes.fromhex("0123456789abcdeffedcba9876543210")

    def test_from_hex_prefixed(self):
        """Test a 0x prefixed title ID."""
        material = EncryptedKeyMaterial.from_hex("0x0005000010040200", "00" * 16)
        assert material.title_id_hex == "0005000010040200"

    def test_from_hex_short_title_id(self):
        """Test short title IDs are zero filled on the left."""
        material = EncryptedKeyMaterial.from_hex("10040200", "00" * 16)
        assert material.title_id == bytes.fromhex("0000000010040200")

    def test_from_hex_invalid(self):
        """Test invalid hex is rejected."""
        with pytest.raises(ValueError):
            EncryptedKeyMaterial.from_hex("zz", "00" * 16)

    def test_frozen(self):
        """Test key material is immutable."""
        material = EncryptedKeyMaterial(title_id=bytes(8), encrypted_key=bytes(16))
        with pytest.raises(ValidationError):
            material.encrypted_key = bytes(16)
