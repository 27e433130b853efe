"""Integrity errors and verification reports for title contents.

Every hash-tree content is checked chunk by chunk. A check ends with
one of these outcomes:

1. Success: every chunk header ties into the tree file
2. RootDigestMismatch: the tree file does not belong to the content
3. HashChainMismatch: a chunk header disagrees with its parent level
4. FileAccessError: the tree or content file could not be read
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from nus_tools.core.types import HashLevel

FileKind = Literal["tree", "content"]


class IntegrityError(Exception):
    """Base class for content verification failures.

    Attributes:
        expected: Expected hash or size as hex string or int
        actual: Actual hash or size as hex string or int
        content_id: The content being verified
    """

    def __init__(
        self,
        message: str,
        *,
        expected: str | int | None = None,
        actual: str | int | None = None,
        content_id: str | None = None,
    ):
        self.expected = expected
        self.actual = actual
        self.content_id = content_id
        super().__init__(message)


class KeyDerivationError(IntegrityError):
    """Raised when the title key cannot be derived."""


class FileAccessError(IntegrityError):
    """Raised when a tree or content file cannot be read.

    Attributes:
        which: ``"tree"`` or ``"content"``
    """

    def __init__(self, message: str, *, which: FileKind, **kwargs: Any):
        self.which = which
        super().__init__(message, **kwargs)


class RootDigestMismatch(IntegrityError):
    """Raised when the tree file digest does not match title metadata."""


class HashChainMismatch(IntegrityError):
    """Raised when a hash level does not match its parent.

    Attributes:
        level: Level whose stored digest disagreed
        index: Position of that digest within its level
        chunk: Chunk number being verified
    """

    def __init__(
        self,
        message: str,
        *,
        level: HashLevel,
        index: int,
        chunk: int,
        **kwargs: Any,
    ):
        self.level = level
        self.index = index
        self.chunk = chunk
        super().__init__(message, **kwargs)


@dataclass
class IntegrityReport:
    """Verdict for a single content.

    Attributes:
        content_id: Content identifier
        chunk_count: Number of whole chunks in the content
        chunks_verified: Chunks that passed before the check ended
        trailing_bytes: Bytes past the last whole chunk, never checked
        error: First failure, or None on success
    """

    content_id: str
    chunk_count: int = 0
    chunks_verified: int = 0
    trailing_bytes: int = 0
    error: IntegrityError | None = None

    @property
    def ok(self) -> bool:
        """Whether the content passed verification."""
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the recorded error, if any."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        """Serialize the report for JSON output."""
        result: dict[str, Any] = {
            "content_id": self.content_id,
            "valid": self.ok,
            "chunk_count": self.chunk_count,
            "chunks_verified": self.chunks_verified,
            "trailing_bytes": self.trailing_bytes,
            "error": None,
        }
        if self.error is not None:
            error: dict[str, Any] = {
                "type": type(self.error).__name__,
                "message": str(self.error),
                "expected": self.error.expected,
                "actual": self.error.actual,
            }
            if isinstance(self.error, HashChainMismatch):
                error["level"] = self.error.level.name
                error["index"] = self.error.index
                error["chunk"] = self.error.chunk
            elif isinstance(self.error, FileAccessError):
                error["which"] = self.error.which
            result["error"] = error
        return result
