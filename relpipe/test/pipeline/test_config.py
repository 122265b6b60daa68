from __future__ import annotations

from pathlib import Path

import pytest

from relpipe.core.result import Err, Ok
from relpipe.pipeline.config import (
    DEFAULT_TARGETS,
    PipelineConfig,
    load_config,
    load_config_or_default,
)


def test_defaults_describe_five_targets() -> None:
    config = PipelineConfig()
    assert config.product == "reth"
    assert [t.arch for t in config.targets] == [
        "aarch64-unknown-linux-gnu",
        "x86_64-unknown-linux-gnu",
        "x86_64-apple-darwin",
        "aarch64-apple-darwin",
        "x86_64-pc-windows-gnu",
    ]
    assert all(t.profile == "maxperf" for t in config.targets)
    assert config.target("x86_64-apple-darwin") is not None
    assert config.target("riscv64gc-unknown-linux-gnu") is None


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    result = load_config_or_default(tmp_path / "relpipe.toml")
    assert result == Ok(PipelineConfig())


def test_missing_file_is_error_for_load_config(tmp_path: Path) -> None:
    result = load_config(tmp_path / "relpipe.toml")
    assert isinstance(result, Err)
    assert "not found" in result.error.message


def test_loads_overrides(tmp_path: Path) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text(
        """
product = "tool"
repo = "acme/tool"
docs_url = "https://docs.example.com/"
max_workers = 2

[[targets]]
arch = "x86_64-unknown-linux-gnu"
platform = "ubuntu-22.04"

[[targets]]
arch = "x86_64-pc-windows-gnu"
platform = "ubuntu-22.04"
profile = "release"
""",
        encoding="utf-8",
    )
    result = load_config(path)
    assert isinstance(result, Ok)
    config = result.value
    assert config.product == "tool"
    assert config.repo == "acme/tool"
    assert config.image == "paradigmxyz/reth"
    assert config.docs_url == "https://docs.example.com"
    assert config.max_workers == 2
    assert [(t.arch, t.profile) for t in config.targets] == [
        ("x86_64-unknown-linux-gnu", "maxperf"),
        ("x86_64-pc-windows-gnu", "release"),
    ]


def test_max_workers_defaults_to_target_count(tmp_path: Path) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text('product = "x"\n', encoding="utf-8")
    result = load_config(path)
    assert isinstance(result, Ok)
    assert result.value.max_workers == len(DEFAULT_TARGETS)


@pytest.mark.parametrize("value", [0, -2])
def test_non_positive_max_workers_is_rejected(tmp_path: Path, value: int) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text(f"max_workers = {value}\n", encoding="utf-8")
    result = load_config(path)
    assert isinstance(result, Err)
    assert "max_workers must be >= 1" in result.error.message


def test_duplicate_arch_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text(
        """
[[targets]]
arch = "x86_64-apple-darwin"
platform = "macos-latest"

[[targets]]
arch = "x86_64-apple-darwin"
platform = "macos-13"
""",
        encoding="utf-8",
    )
    result = load_config(path)
    assert isinstance(result, Err)
    assert "duplicate target arch" in result.error.message


def test_target_without_platform_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text('[[targets]]\narch = "x86_64-apple-darwin"\n', encoding="utf-8")
    result = load_config(path)
    assert isinstance(result, Err)
    assert "targets[0]" in result.error.message


def test_empty_target_list_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text("targets = []\n", encoding="utf-8")
    assert isinstance(load_config(path), Err)


def test_invalid_toml(tmp_path: Path) -> None:
    path = tmp_path / "relpipe.toml"
    path.write_text("product = \n", encoding="utf-8")
    result = load_config(path)
    assert isinstance(result, Err)
    assert "Invalid TOML" in result.error.message
