from __future__ import annotations

from collections.abc import Callable

from relpipe.core.result import Err, Ok, Result
from relpipe.git.repository import GitError, Repository
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import ChangelogEntry, ReleaseTag


def changelog_range(tag: ReleaseTag, previous: str | None) -> str:
    if previous is None:
        return tag.value
    return f"{previous}..{tag.value}"


def _history_error(message: str) -> Callable[[GitError], PipelineError]:
    def convert(error: GitError) -> PipelineError:
        return PipelineError(kind="changelog", message=message, hint=error.message)

    return convert


def generate_changelog(
    repo: Repository, tag: ReleaseTag
) -> Result[tuple[ChangelogEntry, ...], PipelineError]:
    """Commit subjects reachable from `tag` but not from the previous tag.

    Entries keep git log's order (newest first). When no earlier tag exists
    the whole history reachable from `tag` is listed.
    """
    previous = repo.describe_previous_tag(tag.value).map_err(
        _history_error(f"failed to find the tag before {tag}")
    )
    if isinstance(previous, Err):
        return previous

    subjects = repo.log_subjects(changelog_range(tag, previous.value)).map_err(
        _history_error(f"failed to read history for {tag}")
    )
    if isinstance(subjects, Err):
        return subjects

    return Ok(tuple(ChangelogEntry(subject=s) for s in subjects.value))
