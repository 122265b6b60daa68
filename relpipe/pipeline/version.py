from __future__ import annotations

import re

from relpipe.core.result import Err, Ok, Result
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import ReleaseTag

TAG_REF_PREFIX = "refs/tags/"

_RELEASE_TAG_RE = re.compile(
    r"^v(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(?:-[0-9A-Za-z.-]+)?$"
)


def resolve_version(ref: str) -> Result[ReleaseTag, PipelineError]:
    """Strip the tag namespace from a trigger reference.

    The remainder is taken as-is: "refs/tags/v1.2.3" -> "v1.2.3". A reference
    without the prefix passes through unchanged; the shape of the tag is not
    validated here (see looks_like_release_tag).
    """
    value = ref.removeprefix(TAG_REF_PREFIX)
    if not value.strip():
        return Err(
            PipelineError(
                kind="resolution",
                message="empty tag reference",
                hint="expected refs/tags/<tag> (e.g. refs/tags/v1.2.3)",
            )
        )
    return Ok(ReleaseTag(value))


def looks_like_release_tag(tag: ReleaseTag) -> bool:
    return _RELEASE_TAG_RE.match(tag.value) is not None
