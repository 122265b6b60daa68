from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from relpipe import __version__
from relpipe.cli.app import app
from relpipe.cli.commands.release import new_run_dir
from relpipe.cli.context import WORKSPACE_ENV
from relpipe.core.errors import ErrorCode
from relpipe.pipeline.signing import ENV_PASSPHRASE, ENV_SIGNING_KEY

runner = CliRunner()


@pytest.fixture(autouse=True)
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv(WORKSPACE_ENV, str(tmp_path))
    monkeypatch.delenv("GITHUB_REF", raising=False)
    monkeypatch.delenv(ENV_SIGNING_KEY, raising=False)
    monkeypatch.delenv(ENV_PASSPHRASE, raising=False)
    return tmp_path


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_no_command_prints_help() -> None:
    result = runner.invoke(app, [])
    assert result.exit_code == int(ErrorCode.USER_ERROR)
    assert "Usage" in result.output


class TestVersionCommand:
    def test_strips_tag_prefix(self) -> None:
        result = runner.invoke(app, ["version", "--ref", "refs/tags/v1.2.3"])
        assert result.exit_code == 0
        assert result.output.strip() == "v1.2.3"

    def test_reads_github_ref(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_REF", "refs/tags/v0.9.1")
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert result.output.strip() == "v0.9.1"

    def test_empty_tag(self) -> None:
        result = runner.invoke(app, ["version", "--ref", "refs/tags/"])
        assert result.exit_code == int(ErrorCode.USER_ERROR)


class TestTargets:
    def test_default_matrix(self) -> None:
        result = runner.invoke(app, ["targets"])
        assert result.exit_code == 0
        for arch in (
            "aarch64-unknown-linux-gnu",
            "x86_64-unknown-linux-gnu",
            "x86_64-apple-darwin",
            "aarch64-apple-darwin",
            "x86_64-pc-windows-gnu",
        ):
            assert arch in result.output

    def test_configured_matrix(self, workspace: Path) -> None:
        (workspace / "relpipe.toml").write_text(
            'product = "tool"\n\n[[targets]]\narch = "riscv64gc-unknown-linux-gnu"\n'
            'platform = "ubuntu-22.04"\n',
            encoding="utf-8",
        )
        result = runner.invoke(app, ["targets"])
        assert result.exit_code == 0
        assert "riscv64gc-unknown-linux-gnu" in result.output
        assert "x86_64-apple-darwin" not in result.output

    def test_invalid_config(self, workspace: Path) -> None:
        (workspace / "relpipe.toml").write_text("targets = [", encoding="utf-8")
        result = runner.invoke(app, ["targets"])
        assert result.exit_code == int(ErrorCode.USER_ERROR)

    def test_workspace_option(self, tmp_path: Path) -> None:
        other = tmp_path / "other"
        other.mkdir()
        (other / "relpipe.toml").write_text(
            '[[targets]]\narch = "x86_64-unknown-freebsd"\nplatform = "ubuntu-22.04"\n',
            encoding="utf-8",
        )
        result = runner.invoke(app, ["--workspace", str(other), "targets"])
        assert result.exit_code == 0
        assert "x86_64-unknown-freebsd" in result.output

    def test_workspace_option_must_exist(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--workspace", str(tmp_path / "missing"), "targets"])
        assert result.exit_code == int(ErrorCode.USER_ERROR)


def test_render_without_changelog() -> None:
    result = runner.invoke(app, ["render", "--tag", "v2.0.0", "--no-changelog"])
    assert result.exit_code == 0
    assert "- No changes." in result.output
    assert (
        "https://github.com/paradigmxyz/reth/releases/download/v2.0.0/"
        "reth-v2.0.0-x86_64-unknown-linux-gnu.tar.gz"
    ) in result.output


def test_run_requires_signing_secrets() -> None:
    result = runner.invoke(app, ["run", "--ref", "refs/tags/v2.0.0", "--dry-run"])
    assert result.exit_code == int(ErrorCode.ENV_ERROR)


def test_build_rejects_unknown_arch(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(ENV_SIGNING_KEY, "a2V5")
    monkeypatch.setenv(ENV_PASSPHRASE, "secret")
    result = runner.invoke(app, ["build", "--arch", "sparc-sun-solaris", "--tag", "v2.0.0"])
    assert result.exit_code == int(ErrorCode.USER_ERROR)


def test_verify_missing_files(workspace: Path) -> None:
    key = workspace / "key.asc"
    key.write_text("key", encoding="utf-8")
    result = runner.invoke(
        app, ["verify", str(workspace / "reth.tar.gz"), "--key", str(key)]
    )
    assert result.exit_code == int(ErrorCode.USER_ERROR)


def test_run_dirs_are_unique(tmp_path: Path) -> None:
    first = new_run_dir(tmp_path)
    second = new_run_dir(tmp_path)
    assert first != second
    assert first.parent == tmp_path / "runs"
