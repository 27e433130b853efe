"""Verify commands for title content integrity checking."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
import structlog
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from nus_tools.core.config import AppConfig
from nus_tools.core.integrity import IntegrityError, IntegrityReport
from nus_tools.core.title import TitleVerification, load_title, verify_title
from nus_tools.core.types import ContentDescriptor, EncryptedKeyMaterial
from nus_tools.core.utils import format_size, unhexlify, validate_hash_string
from nus_tools.core.verifier import CHUNK_SIZE, ChunkHashTreeVerifier
from nus_tools.crypto.title_key import derive_title_key

logger = structlog.get_logger()


def _get_context_objects(ctx: click.Context) -> tuple[AppConfig, Console, bool, bool]:
    """Extract common context objects."""
    config: AppConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]
    verbose: bool = ctx.obj["verbose"]
    debug: bool = ctx.obj["debug"]
    return config, console, verbose, debug


def _output_json(data: dict[str, Any], console: Console) -> None:
    """Output data as JSON."""
    print(json.dumps(data, indent=2, default=str))


def _resolve_common_key(config: AppConfig, common_key: str | None) -> bytes:
    """Pick the common key from the CLI option or configuration."""
    if common_key is None:
        return config.common_key_bytes
    if not validate_hash_string(common_key, size=16):
        raise click.BadParameter("must be 32 hex characters", param_hint="--common-key")
    return unhexlify(common_key)


def _describe_error(report: IntegrityReport) -> str:
    """One-line description of a report's failure."""
    if report.error is None:
        return ""
    return f"{type(report.error).__name__}: {report.error}"


def _build_report_table(title: str, reports: list[IntegrityReport], skipped: list[str]) -> Table:
    """Build a table of content verdicts."""
    table = Table(title=title)
    table.add_column("Content", style="cyan")
    table.add_column("Chunks", justify="right")
    table.add_column("Status")
    table.add_column("Details", style="dim")

    for report in reports:
        chunks = f"{report.chunks_verified}/{report.chunk_count}"
        if report.ok:
            details = ""
            if report.trailing_bytes:
                details = f"{format_size(report.trailing_bytes)} trailing data not checked"
            table.add_row(report.content_id, chunks, "[green]✓ valid[/green]", details)
        else:
            table.add_row(report.content_id, chunks, "[red]✗ invalid[/red]", _describe_error(report))

    for content_id in skipped:
        table.add_row(content_id, "-", "[yellow]skipped[/yellow]", "no hash tree")

    return table


def _output_plain(reports: list[IntegrityReport], skipped: list[str]) -> None:
    """Output one line per content."""
    for report in reports:
        status = "OK" if report.ok else "FAIL"
        line = f"{report.content_id} {status} {report.chunks_verified}/{report.chunk_count}"
        if not report.ok:
            line += f" {_describe_error(report)}"
        print(line)
    for content_id in skipped:
        print(f"{content_id} SKIPPED")


def _output_title(result: TitleVerification, config: AppConfig, console: Console) -> None:
    if config.output_format == "json":
        _output_json(result.to_dict(), console)
    elif config.output_format == "plain":
        _output_plain(result.reports, result.skipped)
    else:
        console.print(_build_report_table(f"Title {result.title_id}", result.reports, result.skipped))
        if result.ok:
            console.print(f"[green]✓[/green] {len(result.reports)} contents verified")
        else:
            console.print(
                f"[red]✗[/red] {len(result.failed)} of {len(result.reports)} contents failed"
            )


@click.group()
def verify() -> None:
    """Verify title content integrity."""
    pass


@verify.command(name="title")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Contents verified at once")
@click.option("--common-key", help="Common key as hex (overrides configuration)")
@click.pass_context
def verify_title_command(
    ctx: click.Context,
    directory: Path,
    workers: int | None,
    common_key: str | None,
) -> None:
    """Verify every content of a downloaded title directory."""
    config, console, verbose, _ = _get_context_objects(ctx)
    key = _resolve_common_key(config, common_key)

    try:
        tmd, ticket = load_title(directory)
    except ValueError as e:
        raise click.ClickException(f"Failed to load title: {e}") from e

    if verbose and config.output_format == "rich":
        console.print(f"Title ID: {tmd.title_id_hex} (version {tmd.title_version})")
        console.print(f"Contents: {len(tmd.contents)}")

    max_workers = workers or config.max_workers
    try:
        if config.output_format == "rich":
            total = sum(c.size // CHUNK_SIZE for c in tmd.content_descriptors() if c.is_hashed)
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task(f"Verifying title {tmd.title_id_hex}", total=total)
                result = verify_title(
                    directory,
                    tmd,
                    ticket,
                    max_workers=max_workers,
                    common_key=key,
                    progress_callback=lambda chunk, count: progress.advance(task),
                )
        else:
            result = verify_title(
                directory, tmd, ticket, max_workers=max_workers, common_key=key
            )
    except IntegrityError as e:
        raise click.ClickException(f"Failed to verify title: {e}") from e

    _output_title(result, config, console)
    if not result.ok:
        ctx.exit(1)


@verify.command(name="content")
@click.argument("app_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("h3_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--size", type=click.IntRange(min=0), help="Content size (defaults to file size)")
@click.option("--root-digest", required=True, help="Content hash from the TMD (hex, at least 8 bytes)")
@click.option("--title-id", required=True, help="Title ID (hex)")
@click.option("--encrypted-key", required=True, help="Encrypted title key (hex)")
@click.option("--common-key", help="Common key as hex (overrides configuration)")
@click.pass_context
def verify_content_command(
    ctx: click.Context,
    app_file: Path,
    h3_file: Path,
    size: int | None,
    root_digest: str,
    title_id: str,
    encrypted_key: str,
    common_key: str | None,
) -> None:
    """Verify a single content file against its hash tree."""
    config, console, _, _ = _get_context_objects(ctx)
    key = _resolve_common_key(config, common_key)

    if not validate_hash_string(root_digest) or len(root_digest) < 16:
        raise click.BadParameter("must be at least 16 hex characters", param_hint="--root-digest")

    try:
        material = EncryptedKeyMaterial.from_hex(title_id, encrypted_key)
        title_key = derive_title_key(material, key)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--title-id/--encrypted-key") from e
    except IntegrityError as e:
        raise click.ClickException(f"Failed to derive title key: {e}") from e

    content = ContentDescriptor(
        id=app_file.stem,
        size=size if size is not None else app_file.stat().st_size,
        root_digest=unhexlify(root_digest),
    )
    report = ChunkHashTreeVerifier().verify(app_file, h3_file, content, title_key)

    if config.output_format == "json":
        _output_json(report.to_dict(), console)
    elif config.output_format == "plain":
        _output_plain([report], [])
    else:
        console.print(_build_report_table(f"Content {content.id}", [report], []))

    if not report.ok:
        ctx.exit(1)
