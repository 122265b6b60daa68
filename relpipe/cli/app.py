from __future__ import annotations

import logging
import os
from pathlib import Path

import typer

from relpipe import __version__
from relpipe.cli.commands.notes import changelog, render
from relpipe.cli.commands.release import build, run, targets, version
from relpipe.cli.commands.verify import verify
from relpipe.cli.context import WORKSPACE_ENV
from relpipe.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command()(run)
app.command()(build)
app.command()(version)
app.command()(targets)
app.command()(changelog)
app.command()(render)
app.command()(verify)


def _configure_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(show_path=False, show_time=verbose)],
        force=True,
    )


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    ctx: typer.Context,
    show_version: bool = typer.Option(False, "--version", help="Show version and exit."),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Source checkout to release (default: current directory)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log stage scheduling"),
) -> None:
    if show_version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    _configure_logging(verbose)

    if workspace is not None:
        try:
            root = workspace.expanduser().resolve()
        except OSError as e:
            typer.echo(f"error: invalid --workspace: {e}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        if not root.is_dir():
            typer.echo(f"error: --workspace '{root}' is not a directory", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))

        os.environ[WORKSPACE_ENV] = str(root)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))


def main() -> None:
    app()
