from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relpipe.core.errors import ErrorCode
from relpipe.core.result import Err
from relpipe.output.console import ConsoleProtocol, RichConsole
from relpipe.pipeline.config import CONFIG_FILENAME, PipelineConfig, load_config_or_default

WORKSPACE_ENV = "RELPIPE_WORKSPACE"
WORK_DIRNAME = ".relpipe"


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace_root: Path
    config: PipelineConfig
    console: ConsoleProtocol

    @property
    def work_dir(self) -> Path:
        return self.workspace_root / WORK_DIRNAME


def detect_workspace_root() -> Path:
    env = os.environ.get(WORKSPACE_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.cwd().resolve()


def build_context() -> CLIContext:
    root = detect_workspace_root()
    console = RichConsole()

    config = load_config_or_default(root / CONFIG_FILENAME)
    if isinstance(config, Err):
        typer.echo(f"error: {config.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(workspace_root=root, config=config.value, console=console)
