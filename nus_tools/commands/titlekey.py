"""Title key derivation command."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from nus_tools.core.config import AppConfig
from nus_tools.core.integrity import KeyDerivationError
from nus_tools.core.types import EncryptedKeyMaterial
from nus_tools.core.utils import hexlify, unhexlify, validate_hash_string
from nus_tools.crypto.title_key import derive_title_key


@click.command(name="titlekey")
@click.argument("title_id")
@click.argument("encrypted_key")
@click.option("--common-key", help="Common key as hex (overrides configuration)")
@click.pass_context
def titlekey(ctx: click.Context, title_id: str, encrypted_key: str, common_key: str | None) -> None:
    """Decrypt the title key for TITLE_ID."""
    config: AppConfig = ctx.obj["config"]
    console: Console = ctx.obj["console"]

    if common_key is not None and not validate_hash_string(common_key, size=16):
        raise click.BadParameter("must be 32 hex characters", param_hint="--common-key")
    key = unhexlify(common_key) if common_key is not None else config.common_key_bytes

    try:
        material = EncryptedKeyMaterial.from_hex(title_id, encrypted_key)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    try:
        title_key = derive_title_key(material, key)
    except KeyDerivationError as e:
        raise click.ClickException(f"Failed to derive title key: {e}") from e

    if config.output_format == "json":
        import json

        print(json.dumps({
            "title_id": material.title_id_hex,
            "encrypted_key": hexlify(material.encrypted_key, upper=True),
            "title_key": hexlify(title_key, upper=True),
        }, indent=2))
    elif config.output_format == "plain":
        print(hexlify(title_key, upper=True))
    else:
        table = Table(title="Title Key")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Title ID", material.title_id_hex)
        table.add_row("Encrypted Key", hexlify(material.encrypted_key, upper=True))
        table.add_row("Title Key", hexlify(title_key, upper=True))
        console.print(table)
