from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from relpipe.core.errors import ErrorCode

PipelineErrorKind = Literal[
    "resolution",
    "config",
    "environment",
    "build",
    "signing",
    "store",
    "changelog",
    "publish",
    "internal",
]

_EXIT_CODES: dict[str, ErrorCode] = {
    "resolution": ErrorCode.USER_ERROR,
    "config": ErrorCode.USER_ERROR,
    "environment": ErrorCode.ENV_ERROR,
    "build": ErrorCode.BUILD_ERROR,
    "signing": ErrorCode.BUILD_ERROR,
    "store": ErrorCode.BUILD_ERROR,
    "changelog": ErrorCode.IO_ERROR,
    "publish": ErrorCode.NETWORK_ERROR,
    "internal": ErrorCode.BUILD_ERROR,
}


@dataclass(frozen=True, slots=True)
class PipelineError:
    """Error payload shared by every stage.

    `kind` selects the process exit code; `hint` usually carries the stderr
    of the failing external command.
    """

    kind: PipelineErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message

    @property
    def exit_code(self) -> ErrorCode:
        return _EXIT_CODES.get(self.kind, ErrorCode.BUILD_ERROR)
