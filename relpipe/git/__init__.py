"""Git access used by the changelog stage.

Usage:
    from relpipe.git import Repository

    repo = Repository(Path("/path/to/checkout"))
    match repo.describe_previous_tag("v1.1.0"):
        case Ok(prev):
            print(prev)
        case Err(e):
            print(e.message)
"""

from relpipe.git.repository import GitError, Repository

__all__ = [
    "GitError",
    "Repository",
]
