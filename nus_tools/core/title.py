"""Verification of a downloaded title directory.

A title directory holds ``title.tmd``, ``title.tik`` and, for every
content, ``<id>.app`` plus ``<id>.h3`` when the content is hashed.
The title key is derived once and shared by every content check.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from nus_tools.core.integrity import IntegrityReport
from nus_tools.core.types import ContentDescriptor
from nus_tools.core.verifier import ChunkHashTreeVerifier, ProgressCallback
from nus_tools.crypto.title_key import COMMON_KEY, derive_title_key
from nus_tools.formats.ticket import Ticket, TicketParser
from nus_tools.formats.tmd import TMDFile, TMDParser

logger = structlog.get_logger()

TMD_NAME = "title.tmd"
TICKET_NAME = "title.tik"


@dataclass
class TitleVerification:
    """Result of verifying every content of a title.

    Attributes:
        title_id: Title ID as upper-case hex
        reports: Reports for hashed contents, in TMD order
        skipped: IDs of contents without a hash tree
    """

    title_id: str
    reports: list[IntegrityReport] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every verified content passed."""
        return all(report.ok for report in self.reports)

    @property
    def failed(self) -> list[IntegrityReport]:
        """Reports of contents that failed."""
        return [report for report in self.reports if not report.ok]

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "title_id": self.title_id,
            "valid": self.ok,
            "contents": [report.to_dict() for report in self.reports],
            "skipped": self.skipped,
        }


def content_paths(directory: Path, content: ContentDescriptor) -> tuple[Path, Path]:
    """Locate the content and tree file of a content.

    Lower-case IDs are tried first, then upper-case.

    Returns:
        Tuple of (content path, tree path)
    """
    app_path = directory / content.app_name
    h3_path = directory / content.h3_name
    if not app_path.exists():
        upper_app = directory / f"{content.id.upper()}.app"
        if upper_app.exists():
            app_path = upper_app
    if not h3_path.exists():
        upper_h3 = directory / f"{content.id.upper()}.h3"
        if upper_h3.exists():
            h3_path = upper_h3
    return app_path, h3_path


def load_title(directory: Path) -> tuple[TMDFile, Ticket]:
    """Parse the title metadata and ticket of a title directory.

    Raises:
        ValueError: If either file is missing or malformed
    """
    tmd = TMDParser().parse_file(directory / TMD_NAME)
    ticket = TicketParser().parse_file(directory / TICKET_NAME)
    if tmd.title_id != ticket.title_id:
        raise ValueError(
            f"Ticket title ID {ticket.title_id_hex} does not match "
            f"TMD title ID {tmd.title_id_hex}"
        )
    return tmd, ticket


def verify_title(
    directory: Path,
    tmd: TMDFile,
    ticket: Ticket,
    *,
    max_workers: int = 4,
    common_key: bytes = COMMON_KEY,
    progress_callback: ProgressCallback | None = None,
) -> TitleVerification:
    """Verify every hashed content of a title.

    Contents are checked concurrently on at most ``max_workers``
    threads. Each content keeps the verdict a sequential check would
    give it.

    Args:
        directory: Directory holding the content files
        tmd: Parsed title metadata
        ticket: Parsed ticket
        max_workers: Maximum contents verified at once
        common_key: Common key for title key derivation
        progress_callback: Optional per-chunk callback, shared by all
            contents and called from worker threads

    Returns:
        Title verification result

    Raises:
        KeyDerivationError: If the title key cannot be derived
    """
    key = derive_title_key(ticket.key_material(), common_key)
    result = TitleVerification(title_id=tmd.title_id_hex)

    hashed: list[ContentDescriptor] = []
    for content in tmd.content_descriptors():
        if content.is_hashed:
            hashed.append(content)
        else:
            logger.info("content_skipped", content_id=content.id, reason="no hash tree")
            result.skipped.append(content.id)

    logger.info(
        "title_verify_start",
        title_id=result.title_id,
        contents=len(hashed),
        skipped=len(result.skipped),
    )

    verifier = ChunkHashTreeVerifier(progress_callback)

    def check(content: ContentDescriptor) -> IntegrityReport:
        app_path, h3_path = content_paths(directory, content)
        return verifier.verify(app_path, h3_path, content, key)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        result.reports = list(executor.map(check, hashed))

    logger.info(
        "title_verify_done",
        title_id=result.title_id,
        valid=result.ok,
        failed=[report.content_id for report in result.failed],
    )
    return result
