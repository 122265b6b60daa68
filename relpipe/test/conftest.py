"""Shared fixtures: fake collaborators and throwaway git repositories."""

from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
import threading
from pathlib import Path

import pytest

from relpipe.core.result import Err, Ok, Result
from relpipe.output.console import MockConsole
from relpipe.pipeline.build import binary_filename
from relpipe.pipeline.config import PipelineConfig
from relpipe.pipeline.context import RunContext
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import TargetSpec, signature_name
from relpipe.pipeline.store import MemoryArtifactStore

_REQUIRED_BINARIES = {"git": "git", "gpg": "gpg"}


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        for marker, binary in _REQUIRED_BINARIES.items():
            if item.get_closest_marker(marker) and shutil.which(binary) is None:
                item.add_marker(pytest.mark.skip(reason=f"{binary} not installed"))


class FakeBuilder:
    """Writes a small per-target binary where cargo would put it."""

    def __init__(
        self,
        target_dir: Path,
        product: str = "reth",
        fail_on: frozenset[str] = frozenset(),
    ) -> None:
        self.target_dir = target_dir
        self.product = product
        self.fail_on = fail_on
        self.built: list[str] = []
        self._lock = threading.Lock()

    def build(self, target: TargetSpec) -> Result[Path, PipelineError]:
        with self._lock:
            self.built.append(target.arch)
        if target.arch in self.fail_on:
            return Err(PipelineError(kind="build", message=f"build failed for {target.arch}"))

        out = self.target_dir / target.arch / target.profile
        out.mkdir(parents=True, exist_ok=True)
        (out / binary_filename(self.product, target)).write_bytes(
            f"binary for {target.arch}".encode()
        )
        return Ok(self.target_dir)


class FakeSigner:
    """Writes `<archive>.asc` holding a digest of the archive bytes."""

    def __init__(self, fail_on: frozenset[str] = frozenset()) -> None:
        self.fail_on = fail_on

    def sign(self, archive: Path) -> Result[Path, PipelineError]:
        if any(arch in archive.name for arch in self.fail_on):
            return Err(PipelineError(kind="signing", message=f"failed to sign {archive.name}"))
        digest = hashlib.sha256(archive.read_bytes()).hexdigest()
        sig = archive.with_name(signature_name(archive.name))
        sig.write_text(f"-----FAKE SIGNATURE-----\n{digest}\n", encoding="utf-8")
        return Ok(sig)


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def run_ctx(tmp_path: Path, console: MockConsole) -> RunContext:
    return RunContext(
        trigger_ref="refs/tags/v2.0.0",
        config=PipelineConfig(),
        workspace_root=tmp_path,
        work_dir=tmp_path / "jobs",
        store=MemoryArtifactStore(),
        console=console,
    )


def git(repo: Path, *args: str, date: str | None = None) -> str:
    env = {
        **os.environ,
        "GIT_CONFIG_NOSYSTEM": "1",
        "GIT_AUTHOR_NAME": "Release Bot",
        "GIT_AUTHOR_EMAIL": "release@example.com",
        "GIT_COMMITTER_NAME": "Release Bot",
        "GIT_COMMITTER_EMAIL": "release@example.com",
    }
    if date is not None:
        env["GIT_AUTHOR_DATE"] = date
        env["GIT_COMMITTER_DATE"] = date
    proc = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", "-C", str(repo), *args],
        env=env,
        capture_output=True,
        text=True,
        check=True,
    )
    return proc.stdout


class GitHistory:
    """Linear history builder with strictly increasing commit dates."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._n = 0
        root.mkdir(parents=True, exist_ok=True)
        git(root, "init", "-q")

    def commit(self, subject: str) -> str:
        self._n += 1
        (self.root / "CHANGES").write_text(f"{self._n} {subject}\n", encoding="utf-8")
        git(self.root, "add", "CHANGES")
        git(self.root, "commit", "-q", "-m", subject, date=f"2024-01-01T00:{self._n:02d}:00Z")
        return git(self.root, "rev-parse", "HEAD").strip()

    def tag(self, name: str) -> None:
        git(self.root, "tag", name)


@pytest.fixture
def history(tmp_path: Path) -> GitHistory:
    return GitHistory(tmp_path / "repo")


@pytest.fixture
def make_builder(tmp_path: Path):
    def factory(fail_on: frozenset[str] = frozenset()) -> FakeBuilder:
        return FakeBuilder(tmp_path / "target", fail_on=fail_on)

    return factory


@pytest.fixture
def make_signer():
    def factory(fail_on: frozenset[str] = frozenset()) -> FakeSigner:
        return FakeSigner(fail_on=fail_on)

    return factory
