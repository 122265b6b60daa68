"""The release stage graph.

    extract-version
      ├── build-<arch>  (one per target, in parallel)
      └── changelog
    draft-release       (needs extract-version, every build, changelog)
"""

from __future__ import annotations

from dataclasses import dataclass

from relpipe.core.result import Err, Ok, Result
from relpipe.git.repository import Repository
from relpipe.output.console import ScopedConsole, Style
from relpipe.pipeline.build import BuildCollaborator, run_matrix_job
from relpipe.pipeline.changelog import generate_changelog
from relpipe.pipeline.context import RunContext
from relpipe.pipeline.dag import Coordinator, RunReport, Stage, StageContext, StageOutcome
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import ChangelogEntry, ReleaseTag, TargetSpec
from relpipe.pipeline.publish import ReleasePublisher, publish_draft
from relpipe.pipeline.signing import Signer
from relpipe.pipeline.template import DEFAULT_TEMPLATE
from relpipe.pipeline.version import looks_like_release_tag, resolve_version

VERSION_STAGE = "extract-version"
CHANGELOG_STAGE = "changelog"
DRAFT_STAGE = "draft-release"


def build_stage_name(target: TargetSpec) -> str:
    return f"build-{target.arch}"


@dataclass(frozen=True, slots=True)
class Collaborators:
    """External systems the pipeline talks to."""

    builder: BuildCollaborator
    signer: Signer
    repository: Repository
    publisher: ReleasePublisher
    template: str = DEFAULT_TEMPLATE


def _tag_input(ctx: StageContext) -> Result[ReleaseTag, PipelineError]:
    tag = ctx.inputs.get(VERSION_STAGE)
    if not isinstance(tag, ReleaseTag):
        return Err(PipelineError(kind="internal", message="release tag not available"))
    return Ok(tag)


def _version_stage(ctx: StageContext) -> Result[object, PipelineError]:
    tag = resolve_version(ctx.run.trigger_ref)
    if isinstance(tag, Ok) and not looks_like_release_tag(tag.value):
        ctx.run.console.warning(f"tag {tag.value} is not of the form vX.Y.Z; continuing")
    return tag


def _make_build_stage(target: TargetSpec, collab: Collaborators) -> Stage:
    name = build_stage_name(target)

    def run(ctx: StageContext) -> Result[object, PipelineError]:
        tag = _tag_input(ctx)
        if isinstance(tag, Err):
            return tag
        return run_matrix_job(
            ctx.run,
            tag=tag.value,
            target=target,
            builder=collab.builder,
            signer=collab.signer,
            console=ScopedConsole(ctx.run.console, name),
        )

    return Stage(name=name, run=run, depends_on=(VERSION_STAGE,))


def _make_changelog_stage(collab: Collaborators) -> Stage:
    def run(ctx: StageContext) -> Result[object, PipelineError]:
        tag = _tag_input(ctx)
        if isinstance(tag, Err):
            return tag
        return generate_changelog(collab.repository, tag.value)

    return Stage(name=CHANGELOG_STAGE, run=run, depends_on=(VERSION_STAGE,))


def _make_draft_stage(build_names: tuple[str, ...], collab: Collaborators) -> Stage:
    def run(ctx: StageContext) -> Result[object, PipelineError]:
        tag = _tag_input(ctx)
        if isinstance(tag, Err):
            return tag
        changelog = ctx.inputs.get(CHANGELOG_STAGE)
        if not isinstance(changelog, tuple):
            return Err(PipelineError(kind="internal", message="changelog not available"))
        entries = tuple(e for e in changelog if isinstance(e, ChangelogEntry))
        return publish_draft(
            ctx.run,
            tag=tag.value,
            changelog=entries,
            publisher=collab.publisher,
            template=collab.template,
        )

    return Stage(
        name=DRAFT_STAGE,
        run=run,
        depends_on=(VERSION_STAGE, *build_names, CHANGELOG_STAGE),
    )


def release_stages(targets: tuple[TargetSpec, ...], collab: Collaborators) -> list[Stage]:
    builds = [_make_build_stage(t, collab) for t in targets]
    return [
        Stage(name=VERSION_STAGE, run=_version_stage),
        *builds,
        _make_changelog_stage(collab),
        _make_draft_stage(tuple(s.name for s in builds), collab),
    ]


def run_release(ctx: RunContext, collab: Collaborators) -> RunReport:
    """Run the whole pipeline once. Every call creates a new draft release."""
    console = ctx.console

    def report(outcome: StageOutcome) -> None:
        match outcome.status:
            case "succeeded":
                console.print(f"{outcome.name}: done ({outcome.duration_seconds:.1f}s)", Style.DIM)
            case "failed":
                detail = outcome.error.pretty() if outcome.error else "failed"
                console.error(f"{outcome.name}: {detail}")
            case "blocked":
                console.warning(f"{outcome.name}: skipped (upstream failure)")

    stages = release_stages(ctx.config.targets, collab)
    coordinator = Coordinator(stages, max_workers=ctx.config.max_workers, on_finish=report)
    return coordinator.run(ctx)
