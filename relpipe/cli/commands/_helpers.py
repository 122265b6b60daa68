"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from relpipe.core.errors import ErrorCode
from relpipe.core.result import Ok, Result
from relpipe.output.console import Style
from relpipe.pipeline.errors import PipelineError

if TYPE_CHECKING:
    from relpipe.cli.context import CLIContext

T = TypeVar("T")


def unwrap_or_exit(result: Result[T, PipelineError], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code."""
    if isinstance(result, Ok):
        return result.value
    report_error(result.error, ctx)
    raise typer.Exit(code=int(result.error.exit_code))


def report_error(error: PipelineError, ctx: CLIContext) -> None:
    ctx.console.error(error.message)
    if error.hint:
        ctx.console.print(f"hint: {error.hint}", Style.DIM)


def exit_user_error(ctx: CLIContext, message: str) -> NoReturn:
    ctx.console.error(message)
    raise typer.Exit(code=int(ErrorCode.USER_ERROR))

