"""Subprocess execution with Result-based error handling.

Every external collaborator (make, git, gpg, gh, xcrun) is invoked through
this module so failures come back as values and tests can fake one seam.

Usage:
    result = run(["git", "describe", "--tags"], cwd=repo_root)
    match result:
        case Ok(stdout):
            print(stdout)
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from relpipe.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_streaming"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: The exit code of the process (-1 if it never ran).
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def _env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    return dict(env) if env is not None else None


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    input: str | None = None,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run `cmd` to completion and return its stdout.

    `env` replaces the child's environment when given. Secrets belong in
    `input` (written to stdin) so they never show up in `ps` output.
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=_env(env),
            input=input,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(command, -1, partial, f"Command timed out after {timeout}s"))
    except OSError as e:
        return Err(ProcessError(command, -1, "", str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, proc.stdout, proc.stderr))
    return Ok(proc.stdout)


def run_streaming(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
) -> Result[None, ProcessError]:
    """Run `cmd` with stdout/stderr going straight to the terminal.

    For long compiler runs. Nothing is captured, so a failure carries only
    the exit code.
    """
    try:
        returncode = subprocess.call(cmd, cwd=str(cwd), env=_env(env))
    except OSError as e:
        return Err(ProcessError(tuple(cmd), -1, "", str(e)))

    if returncode != 0:
        return Err(ProcessError(tuple(cmd), returncode, "", ""))
    return Ok(None)
