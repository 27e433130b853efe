"""Hash tree verification for encrypted title contents.

A hashed content is a sequence of 64 KiB chunks. Each chunk starts
with a 1 KiB header, encrypted with the title key under a zero IV,
holding three levels of 16 SHA-1 digests:

    0x000-0x140  L0 digests (payload blocks)
    0x140-0x280  L1 digests
    0x280-0x3C0  L2 digests

The L3 digests live in the ``.h3`` tree file, whose own SHA-1 is the
content hash recorded in the title metadata. Each level hashed as a
whole must match one digest of the level above.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import structlog
from Crypto.Cipher import AES  # type: ignore[import-untyped]

from nus_tools.core.integrity import (
    FileAccessError,
    HashChainMismatch,
    IntegrityError,
    IntegrityReport,
    KeyDerivationError,
    RootDigestMismatch,
)
from nus_tools.core.types import ContentDescriptor, HashLevel
from nus_tools.core.utils import compute_sha1

logger = structlog.get_logger()

CHUNK_SIZE = 0x10000
HEADER_SIZE = 0x400
PAYLOAD_SIZE = CHUNK_SIZE - HEADER_SIZE
DIGEST_SIZE = 20
BRANCHING = 16
LEVEL_SIZE = BRANCHING * DIGEST_SIZE
ROOT_PREFIX_SIZE = 8
ZERO_IV = bytes(AES.block_size)

ProgressCallback = Callable[[int, int], None]


def chunk_indices(chunk: int) -> tuple[int, int, int]:
    """Digest indices a chunk is checked against.

    Args:
        chunk: Chunk number within the content

    Returns:
        Tuple of (L1 index, L2 index, L3 index)

    Example:
        >>> chunk_indices(0)
        (0, 0, 0)
        >>> chunk_indices(273)
        (1, 1, 1)
    """
    return (
        chunk % BRANCHING,
        (chunk // BRANCHING) % BRANCHING,
        chunk // (BRANCHING * BRANCHING),
    )


def _digest_at(level: bytes, index: int) -> bytes:
    return level[index * DIGEST_SIZE:(index + 1) * DIGEST_SIZE]


class ChunkHashTreeVerifier:
    """Verifies a content file against its hash tree.

    The verifier holds no per-content state, so one instance can be
    shared between threads.

    Args:
        progress_callback: Called as (chunk, chunk_count) after each
            chunk passes
    """

    def __init__(self, progress_callback: ProgressCallback | None = None):
        self.progress_callback = progress_callback

    def verify(
        self,
        content_path: str | Path,
        tree_path: str | Path,
        content: ContentDescriptor,
        key: bytes,
    ) -> IntegrityReport:
        """Verify a content file.

        Verification stops at the first failure; the report carries
        that failure and how many chunks passed before it.

        Args:
            content_path: Path to the encrypted ``.app`` file
            tree_path: Path to the ``.h3`` tree file
            content: Content descriptor from title metadata
            key: Decrypted title key

        Returns:
            Verification report
        """
        chunk_count = content.size // CHUNK_SIZE
        report = IntegrityReport(
            content_id=content.id,
            chunk_count=chunk_count,
            trailing_bytes=content.size % CHUNK_SIZE,
        )
        log = logger.bind(content_id=content.id)
        log.debug("content_verify_start", chunks=chunk_count, size=content.size)

        if report.trailing_bytes:
            log.warning(
                "content_trailing_bytes_ignored",
                trailing_bytes=report.trailing_bytes,
            )

        try:
            if len(key) != AES.block_size:
                raise KeyDerivationError(
                    f"Title key must be {AES.block_size} bytes, got {len(key)}",
                    expected=AES.block_size,
                    actual=len(key),
                    content_id=content.id,
                )
            tree = self._read_tree(tree_path, content)
            self._check_root(tree, content)
            with self._open_content(content_path, content) as stream:
                for chunk in range(chunk_count):
                    self._verify_chunk(stream, chunk, tree, content, key)
                    report.chunks_verified += 1
                    if self.progress_callback is not None:
                        self.progress_callback(chunk, chunk_count)
        except FileAccessError as e:
            log.error("content_file_error", which=e.which, error=str(e))
            report.error = e
        except IntegrityError as e:
            log.warning(
                "content_verify_failed",
                error_type=type(e).__name__,
                error=str(e),
                chunks_verified=report.chunks_verified,
            )
            report.error = e
        else:
            log.debug("content_verify_ok", chunks=chunk_count)

        return report

    def _read_tree(self, tree_path: str | Path, content: ContentDescriptor) -> bytes:
        try:
            return Path(tree_path).read_bytes()
        except OSError as e:
            raise FileAccessError(
                f"Cannot read tree file {tree_path}: {e}",
                which="tree",
                content_id=content.id,
            ) from e

    def _check_root(self, tree: bytes, content: ContentDescriptor) -> None:
        # Title metadata only pins the first 8 bytes of the tree digest
        actual = compute_sha1(tree)[:ROOT_PREFIX_SIZE]
        expected = content.root_digest[:ROOT_PREFIX_SIZE]
        if actual != expected:
            raise RootDigestMismatch(
                f"Tree file digest mismatch: expected {expected.hex()}, "
                f"got {actual.hex()}",
                expected=expected.hex(),
                actual=actual.hex(),
                content_id=content.id,
            )

    def _open_content(self, content_path: str | Path, content: ContentDescriptor) -> BinaryIO:
        try:
            return open(content_path, "rb")
        except OSError as e:
            raise FileAccessError(
                f"Cannot open content file {content_path}: {e}",
                which="content",
                content_id=content.id,
            ) from e

    def _read_header(self, stream: BinaryIO, chunk: int, content: ContentDescriptor) -> bytes:
        try:
            header = stream.read(HEADER_SIZE)
        except (OSError, ValueError) as e:
            raise FileAccessError(
                f"Cannot read header of chunk {chunk}: {e}",
                which="content",
                content_id=content.id,
            ) from e
        if len(header) != HEADER_SIZE:
            raise FileAccessError(
                f"Content file ends inside chunk {chunk}",
                which="content",
                expected=HEADER_SIZE,
                actual=len(header),
                content_id=content.id,
            )
        return header

    def _skip_payload(self, stream: BinaryIO, chunk: int, content: ContentDescriptor) -> None:
        try:
            stream.seek(PAYLOAD_SIZE, 1)
        except (OSError, ValueError) as e:
            raise FileAccessError(
                f"Cannot seek past chunk {chunk}: {e}",
                which="content",
                content_id=content.id,
            ) from e

    def _verify_chunk(
        self,
        stream: BinaryIO,
        chunk: int,
        tree: bytes,
        content: ContentDescriptor,
        key: bytes,
    ) -> None:
        encrypted = self._read_header(stream, chunk, content)

        # The IV does not chain between chunks
        header = AES.new(key, AES.MODE_CBC, iv=ZERO_IV).decrypt(encrypted)

        l0 = header[0:LEVEL_SIZE]
        l1 = header[LEVEL_SIZE:2 * LEVEL_SIZE]
        l2 = header[2 * LEVEL_SIZE:3 * LEVEL_SIZE]
        l1_index, l2_index, l3_index = chunk_indices(chunk)

        checks = (
            (l0, l1, HashLevel.L1, l1_index),
            (l1, l2, HashLevel.L2, l2_index),
            (l2, tree, HashLevel.L3, l3_index),
        )
        for hashed, parent, level, index in checks:
            expected = _digest_at(parent, index)
            actual = compute_sha1(hashed)
            if actual != expected:
                raise HashChainMismatch(
                    f"{level.name} digest {index} mismatch in chunk {chunk}",
                    level=level,
                    index=index,
                    chunk=chunk,
                    expected=expected.hex(),
                    actual=actual.hex(),
                    content_id=content.id,
                )

        self._skip_payload(stream, chunk, content)


def verify_content(
    content_path: str | Path,
    tree_path: str | Path,
    content: ContentDescriptor,
    key: bytes,
    progress_callback: ProgressCallback | None = None,
) -> IntegrityReport:
    """Verify a single content file.

    Args:
        content_path: Path to the encrypted ``.app`` file
        tree_path: Path to the ``.h3`` tree file
        content: Content descriptor from title metadata
        key: Decrypted title key
        progress_callback: Optional per-chunk callback

    Returns:
        Verification report
    """
    return ChunkHashTreeVerifier(progress_callback).verify(
        content_path, tree_path, content, key
    )
