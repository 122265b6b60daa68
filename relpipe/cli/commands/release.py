from __future__ import annotations

import os
import time
import uuid
from pathlib import Path

import typer

from relpipe.cli.commands._helpers import exit_user_error, report_error, unwrap_or_exit
from relpipe.cli.context import CLIContext, build_context
from relpipe.core.errors import ErrorCode
from relpipe.git.repository import Repository
from relpipe.output.console import ScopedConsole, Style
from relpipe.pipeline.build import CrossBuilder, run_matrix_job
from relpipe.pipeline.context import RunContext
from relpipe.pipeline.dag import RunReport
from relpipe.pipeline.publish import DryRunPublisher, GhReleasePublisher, ReleasePublisher
from relpipe.pipeline.release import DRAFT_STAGE, Collaborators, run_release
from relpipe.pipeline.signing import GpgSigner, SigningSecrets
from relpipe.pipeline.store import DirectoryArtifactStore
from relpipe.pipeline.version import looks_like_release_tag, resolve_version

REF_ENV = "GITHUB_REF"


def new_run_dir(work_dir: Path) -> Path:
    """A fresh directory for one pipeline run (store and job files live under it)."""
    stamp = time.strftime("%Y%m%dT%H%M%S", time.gmtime())
    return work_dir / "runs" / f"{stamp}-{uuid.uuid4().hex[:8]}"


def _run_context(
    ctx: CLIContext, *, ref: str, run_dir: Path, store_dir: Path | None
) -> RunContext:
    store_root = store_dir if store_dir is not None else run_dir / "store"
    return RunContext(
        trigger_ref=ref,
        config=ctx.config,
        workspace_root=ctx.workspace_root,
        work_dir=run_dir / "jobs",
        store=DirectoryArtifactStore(store_root),
        console=ctx.console,
    )


def _signer(ctx: CLIContext) -> GpgSigner:
    secrets = unwrap_or_exit(SigningSecrets.take_from_env(os.environ), ctx)
    return GpgSigner(secrets)


def _print_summary(ctx: CLIContext, report: RunReport) -> None:
    console = ctx.console
    console.header("Summary")
    for o in report.outcomes:
        style = {"succeeded": Style.SUCCESS, "failed": Style.ERROR, "blocked": Style.WARNING}[
            o.status
        ]
        console.print(f"{o.name}: {o.status}", style)


def run(
    ref: str = typer.Option(
        ..., "--ref", envvar=REF_ENV, help="Trigger reference (e.g. refs/tags/v1.2.3)"
    ),
    store: Path | None = typer.Option(
        None, "--store", help="Artifact store directory (default: a fresh one per run)"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Render the draft but do not create it"
    ),
    rustup: bool = typer.Option(
        True, "--rustup/--no-rustup", help="Install the rust target before each build"
    ),
) -> None:
    """Build, sign and publish a draft release for a tag."""
    ctx = build_context()
    console = ctx.console

    publisher: ReleasePublisher = (
        DryRunPublisher()
        if dry_run
        else GhReleasePublisher(repo=ctx.config.repo, workspace_root=ctx.workspace_root)
    )
    collab = Collaborators(
        builder=CrossBuilder(
            workspace_root=ctx.workspace_root,
            console=console,
            install_target=rustup,
        ),
        signer=_signer(ctx),
        repository=Repository(ctx.workspace_root),
        publisher=publisher,
    )

    console.header(f"Release {ref}")
    console.print(f"targets: {len(ctx.config.targets)}", Style.DIM)
    run_dir = new_run_dir(ctx.work_dir)
    console.print(f"run directory: {run_dir}", Style.DIM)
    report = run_release(_run_context(ctx, ref=ref, run_dir=run_dir, store_dir=store), collab)
    _print_summary(ctx, report)

    failure = report.first_failure
    if failure is not None:
        if failure.error is not None:
            report_error(failure.error, ctx)
            raise typer.Exit(code=int(failure.error.exit_code))
        raise typer.Exit(code=int(ErrorCode.BUILD_ERROR))

    console.success(f"draft release: {report.output(DRAFT_STAGE)}")


def version(
    ref: str = typer.Option(..., "--ref", envvar=REF_ENV, help="Trigger reference"),
) -> None:
    """Print the release tag for a trigger reference."""
    ctx = build_context()
    tag = unwrap_or_exit(resolve_version(ref), ctx)
    if not looks_like_release_tag(tag):
        ctx.console.warning(f"tag {tag} is not of the form vX.Y.Z")
    typer.echo(tag.value)


def targets() -> None:
    """List the configured build targets."""
    ctx = build_context()
    for t in ctx.config.targets:
        ctx.console.print(f"{t.arch}  platform={t.platform}  profile={t.profile}  os={t.os_family}")


def build(
    arch: str = typer.Option(..., "--arch", help="Target triple to build"),
    tag: str = typer.Option(..., "--tag", help="Release tag (e.g. v1.2.3)"),
    store: Path | None = typer.Option(None, "--store", help="Artifact store directory"),
    rustup: bool = typer.Option(True, "--rustup/--no-rustup"),
) -> None:
    """Run one matrix job: build, package, sign and store."""
    ctx = build_context()
    target = ctx.config.target(arch)
    if target is None:
        exit_user_error(ctx, f"unknown target: {arch} (see `relpipe targets`)")

    release_tag = unwrap_or_exit(resolve_version(tag), ctx)
    run_ctx = _run_context(ctx, ref=tag, run_dir=ctx.work_dir, store_dir=store)
    bundle = unwrap_or_exit(
        run_matrix_job(
            run_ctx,
            tag=release_tag,
            target=target,
            builder=CrossBuilder(
                workspace_root=ctx.workspace_root, console=ctx.console, install_target=rustup
            ),
            signer=_signer(ctx),
            console=ScopedConsole(ctx.console, f"build-{arch}"),
        ),
        ctx,
    )
    for path in bundle.files:
        ctx.console.print(str(path), Style.DIM)
