"""Build matrix jobs.

One job per TargetSpec: prepare the toolchain, build, locate the binary,
package it as `<product>-<tag>-<arch>.tar.gz`, sign the archive, and put
both files into the artifact store. A failing job fails only itself.
"""

from __future__ import annotations

import gzip
import os
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from relpipe.core.result import Err, Ok, Result
from relpipe.output.console import ConsoleProtocol, Style
from relpipe.pipeline.context import RunContext
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import (
    BuildArtifact,
    ReleaseTag,
    SignedBundle,
    TargetSpec,
    archive_name,
    signature_name,
)
from relpipe.pipeline.signing import Signer, without_secrets
from relpipe.platform.process import run as run_process
from relpipe.platform.process import run_streaming

_XCRUN_TIMEOUT_SECONDS = 60.0
_RUSTUP_TIMEOUT_SECONDS = 5 * 60.0

# Targets that need the macOS SDK exported before cargo runs.
_APPLE_SDK_TARGETS = frozenset({"aarch64-apple-darwin"})


class BuildCollaborator(Protocol):
    def build(self, target: TargetSpec) -> Result[Path, PipelineError]:
        """Compile for `target` and return the cargo target directory."""
        ...


def binary_filename(product: str, target: TargetSpec) -> str:
    if target.is_windows:
        return f"{product}.exe"
    return product


def locate_binary(
    target_dir: Path, product: str, target: TargetSpec
) -> Result[Path, PipelineError]:
    """Find the compiled binary at `<target_dir>/<arch>/<profile>/<binary>`."""
    path = target_dir / target.arch / target.profile / binary_filename(product, target)
    if not path.is_file():
        return Err(
            PipelineError(
                kind="build",
                message=f"binary not found for {target.arch}",
                hint=str(path),
            )
        )
    return Ok(path)


def package_archive(binary: Path, out_dir: Path, name: str) -> Result[Path, PipelineError]:
    """Write a gzip tarball holding `binary` at its root.

    Member metadata and the gzip header carry no timestamps or owners, so
    the archive bytes depend only on the binary.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / name
    try:
        with out.open("wb") as raw, gzip.GzipFile(
            filename="", mode="wb", fileobj=raw, mtime=0
        ) as gz, tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
            info = tar.gettarinfo(str(binary), arcname=binary.name)
            info.mtime = 0
            info.uid = info.gid = 0
            info.uname = info.gname = ""
            info.mode = 0o755
            with binary.open("rb") as f:
                tar.addfile(info, f)
    except OSError as e:
        return Err(
            PipelineError(kind="build", message=f"failed to package {name}", hint=str(e))
        )
    return Ok(out)


@dataclass(frozen=True, slots=True)
class CrossBuilder:
    """Build through the workspace Makefile (`make build-<arch>`)."""

    workspace_root: Path
    console: ConsoleProtocol
    install_target: bool = True

    def prepare_env(self, target: TargetSpec) -> Result[dict[str, str], PipelineError]:
        env = without_secrets(os.environ)
        env["PROFILE"] = target.profile

        if self.install_target:
            added = run_process(
                ["rustup", "target", "add", target.arch],
                cwd=self.workspace_root,
                timeout=_RUSTUP_TIMEOUT_SECONDS,
            )
            if isinstance(added, Err):
                return Err(
                    PipelineError(
                        kind="build",
                        message=f"failed to install rust target {target.arch}",
                        hint=added.error.stderr.strip() or None,
                    )
                )

        if target.arch in _APPLE_SDK_TARGETS:
            sdk = self._xcrun(["--show-sdk-path"])
            if isinstance(sdk, Err):
                return sdk
            version = self._xcrun(["--show-sdk-platform-version"])
            if isinstance(version, Err):
                return version
            env["SDKROOT"] = sdk.value
            env["MACOSX_DEPLOYMENT_TARGET"] = version.value

        return Ok(env)

    def _xcrun(self, args: list[str]) -> Result[str, PipelineError]:
        result = run_process(
            ["xcrun", "-sdk", "macosx", *args],
            cwd=self.workspace_root,
            timeout=_XCRUN_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="build",
                    message="macOS SDK lookup failed",
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(result.value.strip())

    def build(self, target: TargetSpec) -> Result[Path, PipelineError]:
        env = self.prepare_env(target)
        if isinstance(env, Err):
            return env

        self.console.print(f"make build-{target.arch} (PROFILE={target.profile})", Style.DIM)
        result = run_streaming(["make", f"build-{target.arch}"], cwd=self.workspace_root, env=env)
        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="build",
                    message=f"build failed for {target.arch}",
                    hint=str(result.error),
                )
            )
        return Ok(self.workspace_root / "target")


def _store_file(ctx: RunContext, path: Path) -> Result[None, PipelineError]:
    try:
        blob = path.read_bytes()
    except OSError as e:
        return Err(PipelineError(kind="store", message=f"failed to read {path.name}", hint=str(e)))
    return ctx.store.put(path.name, blob)


def run_matrix_job(
    ctx: RunContext,
    *,
    tag: ReleaseTag,
    target: TargetSpec,
    builder: BuildCollaborator,
    signer: Signer,
    console: ConsoleProtocol | None = None,
) -> Result[SignedBundle, PipelineError]:
    """Build, package, sign and store one target."""
    out = console or ctx.console
    product = ctx.config.product

    built = builder.build(target)
    if isinstance(built, Err):
        return built

    binary = locate_binary(built.value, product, target)
    if isinstance(binary, Err):
        return binary

    name = archive_name(product, tag, target.arch)
    archive = package_archive(binary.value, ctx.job_dir(target.arch), name)
    if isinstance(archive, Err):
        return archive
    out.print(f"packaged {name}", Style.DIM)

    signature = signer.sign(archive.value)
    if isinstance(signature, Err):
        return signature
    if signature.value.name != signature_name(name):
        return Err(
            PipelineError(
                kind="signing",
                message=f"unexpected signature name: {signature.value.name}",
            )
        )

    for path in (archive.value, signature.value):
        stored = _store_file(ctx, path)
        if isinstance(stored, Err):
            return stored

    out.success(f"{name} (+ .asc)")
    return Ok(
        SignedBundle(
            artifact=BuildArtifact(target=target, tag=tag, archive_name=name, path=archive.value),
            signature_name=signature.value.name,
            signature_path=signature.value,
        )
    )

