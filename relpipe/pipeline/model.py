from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal


OsFamily = Literal["linux", "macos", "windows"]


@dataclass(frozen=True, slots=True)
class ReleaseTag:
    """Version string resolved once per run (e.g. "v1.2.3")."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class TargetSpec:
    """One cross-compilation target of the build matrix."""

    arch: str  # full target triple, e.g. x86_64-unknown-linux-gnu
    platform: str  # runner image, e.g. ubuntu-20.04
    profile: str  # cargo profile, e.g. maxperf

    @property
    def cpu(self) -> str:
        return self.arch.split("-", 1)[0]

    @property
    def os_family(self) -> OsFamily:
        if "-windows" in self.arch:
            return "windows"
        if "-apple-" in self.arch:
            return "macos"
        return "linux"

    @property
    def is_windows(self) -> bool:
        return self.os_family == "windows"


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    target: TargetSpec
    tag: ReleaseTag
    archive_name: str
    path: Path


@dataclass(frozen=True, slots=True)
class SignedBundle:
    artifact: BuildArtifact
    signature_name: str
    signature_path: Path

    @property
    def files(self) -> tuple[Path, Path]:
        return (self.artifact.path, self.signature_path)


@dataclass(frozen=True, slots=True)
class ChangelogEntry:
    subject: str

    def render(self) -> str:
        return f"- {self.subject}"


@dataclass(frozen=True, slots=True)
class ReleaseDraft:
    tag: ReleaseTag
    body: str
    assets: tuple[Path, ...]


def archive_name(product: str, tag: ReleaseTag, arch: str) -> str:
    return f"{product}-{tag}-{arch}.tar.gz"


def signature_name(archive: str) -> str:
    return f"{archive}.asc"


def artifact_prefix(product: str, tag: ReleaseTag) -> str:
    """Store key prefix shared by every artifact of one run."""
    return f"{product}-{tag}-"
