from __future__ import annotations

from pathlib import Path

import typer

from relpipe.cli.commands._helpers import exit_user_error, unwrap_or_exit
from relpipe.cli.context import build_context
from relpipe.pipeline.model import signature_name
from relpipe.pipeline.signing import verify_signature


def verify(
    archive: Path = typer.Argument(..., help="Release archive (.tar.gz)"),
    key: Path = typer.Option(..., "--key", help="Armored public key file"),
    signature: Path | None = typer.Option(
        None, "--signature", help="Detached signature (default: <archive>.asc)"
    ),
) -> None:
    """Verify an archive against its detached signature."""
    ctx = build_context()
    sig = signature or archive.with_name(signature_name(archive.name))
    for path in (archive, sig, key):
        if not path.is_file():
            exit_user_error(ctx, f"file not found: {path}")

    try:
        public_key = key.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        exit_user_error(ctx, f"failed to read key: {e}")

    unwrap_or_exit(verify_signature(archive, sig, public_key), ctx)
    ctx.console.success(f"{archive.name}: good signature")
