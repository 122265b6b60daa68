"""Git repository abstraction.

All operations shell out to `git -C <path>` and return Result types.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from relpipe.core.result import Err, Ok, Result
from relpipe.platform.process import ProcessError
from relpipe.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_LOG_TIMEOUT_SECONDS = 2 * 60.0

# `git describe` stderr when no tag is reachable from the given commit.
_NO_TAG_MARKERS = (
    "no names found",
    "no tags can describe",
    "cannot describe",
)

__all__ = [
    "GitError",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message (stderr when available)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


class Repository:
    """A local git checkout.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def rev_parse(self, rev: str) -> Result[str, GitError]:
        """Resolve a revision to a full commit sha."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"])
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command="rev-parse",
                        message=e.stderr.strip() or f"unknown revision: {rev}",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok(stdout.strip())

    def has_parent(self, rev: str) -> bool:
        return isinstance(self.rev_parse(f"{rev}^"), Ok)

    def describe_previous_tag(self, tag: str) -> Result[str | None, GitError]:
        """Find the nearest tag reachable from the parent of `tag`.

        Runs `git describe --tags --abbrev=0 <tag>^`.

        Returns:
            Ok(tag name), Ok(None) when no earlier tag exists (first release
            or `tag` points at a root commit), Err(GitError) otherwise.
        """
        rev = self.rev_parse(tag)
        if isinstance(rev, Err):
            return rev
        if not self.has_parent(tag):
            return Ok(None)

        result = self._run(["describe", "--tags", "--abbrev=0", f"{tag}^"])
        match result:
            case Err(e):
                stderr = e.stderr.strip()
                if any(marker in stderr.lower() for marker in _NO_TAG_MARKERS):
                    return Ok(None)
                return Err(
                    GitError(
                        command="describe",
                        message=stderr or "git describe failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok(stdout.strip() or None)

    def log_subjects(self, revision_range: str) -> Result[list[str], GitError]:
        """Commit subject lines for a revision range, as git log orders them.

        git log walks newest first, so the list is reverse-chronological.
        """
        result = self._run(["log", "--pretty=format:%s", revision_range])
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command="log",
                        message=e.stderr.strip() or "git log failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(stdout):
                return Ok([ln for ln in stdout.splitlines() if ln.strip()])

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = _GIT_LOG_TIMEOUT_SECONDS if command == "log" else _GIT_TIMEOUT_SECONDS
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)
