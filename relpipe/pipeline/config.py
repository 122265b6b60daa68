"""Pipeline configuration.

Defaults describe the reth release; a `relpipe.toml` in the workspace root
overrides any of them:

    product = "reth"
    repo = "paradigmxyz/reth"
    max_workers = 5

    [[targets]]
    arch = "x86_64-unknown-linux-gnu"
    platform = "ubuntu-20.04"
    profile = "maxperf"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from relpipe.core.result import Err, Ok, Result
from relpipe.core.structured import StrDict, as_str_dict, get_int, get_list, get_str
from relpipe.pipeline.model import TargetSpec

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TARGETS",
    "ConfigError",
    "PipelineConfig",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "relpipe.toml"

DEFAULT_PRODUCT = "reth"
DEFAULT_REPO = "paradigmxyz/reth"
DEFAULT_IMAGE = "paradigmxyz/reth"
DEFAULT_DOCS_URL = "https://paradigmxyz.github.io/reth"
DEFAULT_SIGNING_KEY = "A3AE 097C 8909 3A12 4049  DF1F 5391 A3C4 1005 30B4"
DEFAULT_PROFILE = "maxperf"

DEFAULT_TARGETS: tuple[TargetSpec, ...] = (
    TargetSpec(arch="aarch64-unknown-linux-gnu", platform="ubuntu-20.04", profile="maxperf"),
    TargetSpec(arch="x86_64-unknown-linux-gnu", platform="ubuntu-20.04", profile="maxperf"),
    TargetSpec(arch="x86_64-apple-darwin", platform="macos-latest", profile="maxperf"),
    TargetSpec(arch="aarch64-apple-darwin", platform="macos-latest", profile="maxperf"),
    TargetSpec(arch="x86_64-pc-windows-gnu", platform="ubuntu-20.04", profile="maxperf"),
)


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    product: str = DEFAULT_PRODUCT
    repo: str = DEFAULT_REPO  # owner/name on GitHub
    image: str = DEFAULT_IMAGE
    docs_url: str = DEFAULT_DOCS_URL
    signing_key: str = DEFAULT_SIGNING_KEY  # fingerprint shown in the release body
    max_workers: int = len(DEFAULT_TARGETS)
    targets: tuple[TargetSpec, ...] = field(default=DEFAULT_TARGETS)

    def target(self, arch: str) -> TargetSpec | None:
        for t in self.targets:
            if t.arch == arch:
                return t
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PipelineConfig:
        """Create a config from parsed TOML.

        Raises:
            ValueError: If a target entry is malformed or an arch repeats.
        """
        targets = DEFAULT_TARGETS
        raw_targets = get_list(data, "targets")
        if raw_targets is not None:
            targets = tuple(_parse_target(item, index=i) for i, item in enumerate(raw_targets))

        seen: set[str] = set()
        for t in targets:
            if t.arch in seen:
                raise ValueError(f"duplicate target arch: {t.arch}")
            seen.add(t.arch)
        if not targets:
            raise ValueError("at least one target is required")

        configured = get_int(data, "max_workers")
        max_workers = len(targets) if configured is None else configured
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        return cls(
            product=get_str(data, "product") or DEFAULT_PRODUCT,
            repo=get_str(data, "repo") or DEFAULT_REPO,
            image=get_str(data, "image") or DEFAULT_IMAGE,
            docs_url=(get_str(data, "docs_url") or DEFAULT_DOCS_URL).rstrip("/"),
            signing_key=get_str(data, "signing_key") or DEFAULT_SIGNING_KEY,
            max_workers=max_workers,
            targets=targets,
        )


def _parse_target(item: object, *, index: int) -> TargetSpec:
    table: StrDict | None = as_str_dict(item)
    if table is None:
        raise ValueError(f"targets[{index}] must be a table")
    arch = get_str(table, "arch")
    platform = get_str(table, "platform")
    if arch is None or platform is None:
        raise ValueError(f"targets[{index}] requires 'arch' and 'platform'")
    return TargetSpec(
        arch=arch,
        platform=platform,
        profile=get_str(table, "profile") or DEFAULT_PROFILE,
    )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data = as_str_dict(tomllib.loads(path.read_bytes().decode("utf-8")))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Load and validate a relpipe.toml file.

    Args:
        path: Path to the config file

    Returns:
        Ok(PipelineConfig) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(PipelineConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Like load_config, but a missing file yields the default config."""
    if not path.exists():
        return Ok(PipelineConfig())
    return load_config(path)
