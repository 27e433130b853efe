"""Pytest configuration and shared fixtures for nus_tools tests."""

import hashlib
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from typing import NamedTuple
from unittest.mock import Mock

import pytest
from Crypto.Cipher import AES

from nus_tools.core.config import AppConfig
from nus_tools.core.types import ContentDescriptor, ContentType, EncryptedKeyMaterial
from nus_tools.crypto.title_key import COMMON_KEY, derive_title_key
from nus_tools.formats.ticket import TicketBuilder
from nus_tools.formats.tmd import TMDBuilder, TMDContent

CHUNK_SIZE = 0x10000
HEADER_SIZE = 0x400
DIGEST_SIZE = 20

SAMPLE_TITLE_ID = bytes.fromhex("0005000010040200")
SAMPLE_ENCRYPTED_KEY = bytes.fromhex("0123456789abcdeffedcba9876543210")


class BuiltContent(NamedTuple):
    """Paths and descriptor of a synthetic content."""
    app_path: Path
    h3_path: Path
    descriptor: ContentDescriptor


HeaderEdit = Callable[[int, bytearray], None]


def _sha1(data: bytes) -> bytes:
    return hashlib.sha1(data).digest()


def _pad_level(digests: list[bytes]) -> bytes:
    """Concatenate up to 16 digests, zero filling the rest."""
    return b"".join(digests).ljust(16 * DIGEST_SIZE, b"\x00")


def build_hash_tree(chunk_count: int) -> tuple[list[bytes], bytes]:
    """Build plaintext chunk headers and the tree file for a content.

    L0 digests are synthetic; every other level is derived from the
    level below the way a packaged content lays it out.

    Returns:
        Tuple of (headers, tree file data)
    """
    l0_sets = [
        _pad_level([_sha1(f"{chunk}:{block}".encode()) for block in range(16)])
        for chunk in range(chunk_count)
    ]
    group_count = (chunk_count + 15) // 16
    l1_sets = [
        _pad_level([_sha1(l0) for l0 in l0_sets[group * 16:(group + 1) * 16]])
        for group in range(group_count)
    ]
    page_count = (group_count + 15) // 16
    l2_sets = [
        _pad_level([_sha1(l1) for l1 in l1_sets[page * 16:(page + 1) * 16]])
        for page in range(page_count)
    ]
    tree = b"".join(_sha1(l2) for l2 in l2_sets)

    headers = [
        (l0_sets[chunk] + l1_sets[chunk // 16] + l2_sets[chunk // 256]).ljust(HEADER_SIZE, b"\x00")
        for chunk in range(chunk_count)
    ]
    return headers, tree


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def key_material() -> EncryptedKeyMaterial:
    """Key material for the sample title."""
    return EncryptedKeyMaterial(title_id=SAMPLE_TITLE_ID, encrypted_key=SAMPLE_ENCRYPTED_KEY)


@pytest.fixture
def title_key(key_material: EncryptedKeyMaterial) -> bytes:
    """Decrypted title key for the sample title."""
    return derive_title_key(key_material)


@pytest.fixture
def build_content(temp_dir: Path, title_key: bytes) -> Callable[..., BuiltContent]:
    """Factory writing a synthetic hashed content to the temp directory.

    Keyword arguments:
        chunk_count: Number of whole chunks
        trailing: Extra bytes appended after the last chunk
        header_edit: Called as (chunk, header) on plaintext headers
            before encryption, to simulate tampering
        root_digest: Overrides the descriptor's root digest
    """

    def _build(
        content_id: str = "00000000",
        chunk_count: int = 1,
        *,
        trailing: int = 0,
        header_edit: HeaderEdit | None = None,
        root_digest: bytes | None = None,
        directory: Path | None = None,
    ) -> BuiltContent:
        directory = directory or temp_dir
        headers, tree = build_hash_tree(chunk_count)
        size = chunk_count * CHUNK_SIZE + trailing

        app_path = directory / f"{content_id}.app"
        with open(app_path, "wb") as f:
            for chunk, header in enumerate(headers):
                plain = bytearray(header)
                if header_edit is not None:
                    header_edit(chunk, plain)
                f.seek(chunk * CHUNK_SIZE)
                f.write(AES.new(title_key, AES.MODE_CBC, iv=bytes(16)).encrypt(bytes(plain)))
            f.truncate(size)

        h3_path = directory / f"{content_id}.h3"
        h3_path.write_bytes(tree)

        descriptor = ContentDescriptor(
            id=content_id,
            size=size,
            root_digest=root_digest if root_digest is not None else _sha1(tree),
            content_type=ContentType.ENCRYPTED | ContentType.HASHED | ContentType.CONTENT,
        )
        return BuiltContent(app_path, h3_path, descriptor)

    return _build


@pytest.fixture
def build_title(
    temp_dir: Path,
    build_content: Callable[..., BuiltContent],
) -> Callable[..., Path]:
    """Factory writing a title directory with TMD, ticket and contents.

    Takes a list of chunk counts, one per hashed content, and an
    optional list of unhashed content IDs.
    """

    def _build(chunk_counts: list[int], unhashed: list[int] | None = None) -> Path:
        contents: list[TMDContent] = []
        for index, chunk_count in enumerate(chunk_counts):
            built = build_content(f"{index:08x}", chunk_count)
            contents.append(TMDContent(
                content_id=index,
                index=index,
                content_type=built.descriptor.content_type,
                size=built.descriptor.size,
                hash=built.descriptor.root_digest.ljust(32, b"\x00"),
            ))
        for offset, content_id in enumerate(unhashed or []):
            contents.append(TMDContent(
                content_id=content_id,
                index=len(chunk_counts) + offset,
                content_type=ContentType.ENCRYPTED | ContentType.CONTENT,
                size=0x8000,
                hash=bytes(32),
            ))

        tmd = TMDBuilder.create_with_contents(SAMPLE_TITLE_ID, contents)
        (temp_dir / "title.tmd").write_bytes(TMDBuilder().build(tmd))
        ticket = TicketBuilder.create(SAMPLE_TITLE_ID, SAMPLE_ENCRYPTED_KEY)
        (temp_dir / "title.tik").write_bytes(TicketBuilder().build(ticket))
        return temp_dir

    return _build


@pytest.fixture
def mock_config() -> Mock:
    """Create standardized mock app config for CLI testing."""
    config = Mock(spec=AppConfig)
    config.output_format = "rich"
    config.max_workers = 2
    config.common_key_bytes = COMMON_KEY
    return config
