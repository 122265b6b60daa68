"""Draft release publication (the join stage).

publish_draft runs only after every build job and the changelog stage have
succeeded. It still re-checks the store so a missing archive or signature
fails loudly instead of producing a release with holes in it.
"""

from __future__ import annotations

import shutil
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from relpipe.core.result import Err, Ok, Result
from relpipe.output.console import Style
from relpipe.pipeline.context import RunContext
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import (
    ChangelogEntry,
    ReleaseDraft,
    ReleaseTag,
    TargetSpec,
    archive_name,
    artifact_prefix,
    signature_name,
)
from relpipe.pipeline.store import ArtifactStore
from relpipe.pipeline.template import (
    DEFAULT_TEMPLATE,
    BodyValues,
    download_links,
    render_release_body,
)
from relpipe.platform.process import run as run_process

_GH_CREATE_TIMEOUT_SECONDS = 30 * 60.0

NOTES_FILENAME = "RELEASE_NOTES.md"


@dataclass(frozen=True, slots=True)
class StoredBundle:
    archive_name: str
    archive: bytes
    signature: bytes


class ReleasePublisher(Protocol):
    def create_draft(self, draft: ReleaseDraft) -> Result[str, PipelineError]:
        """Create the draft release and return its URL."""
        ...


def collect_bundles(
    store: ArtifactStore,
    *,
    product: str,
    tag: ReleaseTag,
    targets: Sequence[TargetSpec],
) -> Result[tuple[StoredBundle, ...], PipelineError]:
    """Pair every target's archive with its signature, in target order."""
    blobs = store.get_all(artifact_prefix(product, tag))
    bundles: list[StoredBundle] = []
    missing: list[str] = []
    for t in targets:
        name = archive_name(product, tag, t.arch)
        archive = blobs.get(name)
        signature = blobs.get(signature_name(name))
        if archive is None:
            missing.append(name)
        if signature is None:
            missing.append(signature_name(name))
        if archive is not None and signature is not None:
            bundles.append(StoredBundle(archive_name=name, archive=archive, signature=signature))

    if missing:
        return Err(
            PipelineError(
                kind="publish",
                message=f"{len(missing)} artifact(s) missing from the store",
                hint=", ".join(missing),
            )
        )
    return Ok(tuple(bundles))


def stage_assets(
    bundles: Sequence[StoredBundle], asset_dir: Path
) -> Result[tuple[Path, ...], PipelineError]:
    """Write bundles to local files (archive then signature, per target)."""
    paths: list[Path] = []
    try:
        asset_dir.mkdir(parents=True, exist_ok=True)
        for b in bundles:
            for name, blob in (
                (b.archive_name, b.archive),
                (signature_name(b.archive_name), b.signature),
            ):
                path = asset_dir / name
                path.write_bytes(blob)
                paths.append(path)
    except OSError as e:
        return Err(PipelineError(kind="publish", message="failed to stage assets", hint=str(e)))
    return Ok(tuple(paths))


def build_draft(
    ctx: RunContext,
    *,
    tag: ReleaseTag,
    changelog: tuple[ChangelogEntry, ...],
    asset_dir: Path,
    template: str = DEFAULT_TEMPLATE,
) -> Result[ReleaseDraft, PipelineError]:
    config = ctx.config
    bundles = collect_bundles(ctx.store, product=config.product, tag=tag, targets=config.targets)
    if isinstance(bundles, Err):
        return bundles

    assets = stage_assets(bundles.value, asset_dir)
    if isinstance(assets, Err):
        return assets

    body = render_release_body(
        template,
        BodyValues(
            tag=tag,
            changelog=changelog,
            links=download_links(
                repo=config.repo, product=config.product, tag=tag, targets=config.targets
            ),
            repo=config.repo,
            image=config.image,
            signing_key=config.signing_key,
            docs_url=config.docs_url,
        ),
    )
    return Ok(ReleaseDraft(tag=tag, body=body, assets=assets.value))


def publish_draft(
    ctx: RunContext,
    *,
    tag: ReleaseTag,
    changelog: tuple[ChangelogEntry, ...],
    publisher: ReleasePublisher,
    template: str = DEFAULT_TEMPLATE,
) -> Result[str, PipelineError]:
    """Collect, render and create the draft release. Returns its URL."""
    job_dir = ctx.job_dir("draft-release")
    draft = build_draft(
        ctx, tag=tag, changelog=changelog, asset_dir=job_dir / "assets", template=template
    )
    if isinstance(draft, Err):
        return draft

    notes = job_dir / NOTES_FILENAME
    try:
        notes.write_text(draft.value.body, encoding="utf-8")
    except OSError as e:
        return Err(PipelineError(kind="publish", message="failed to write notes", hint=str(e)))
    ctx.console.print(f"release notes: {notes}", Style.DIM)

    return publisher.create_draft(draft.value)


@dataclass(frozen=True, slots=True)
class GhReleasePublisher:
    """Create the draft with `gh release create --draft`.

    There is no check for an existing release with the same tag; running
    twice creates two drafts.
    """

    repo: str
    workspace_root: Path

    def create_draft(self, draft: ReleaseDraft) -> Result[str, PipelineError]:
        if shutil.which("gh") is None:
            return Err(
                PipelineError(
                    kind="environment",
                    message="gh: missing",
                    hint="Install GitHub CLI: https://cli.github.com/",
                )
            )

        cmd = [
            "gh",
            "release",
            "create",
            draft.tag.value,
            "--draft",
            "--title",
            draft.tag.value,
            "--notes-file",
            "-",
            "--repo",
            self.repo,
            *(str(p) for p in draft.assets),
        ]
        result = run_process(
            cmd,
            cwd=self.workspace_root,
            input=draft.body,
            timeout=_GH_CREATE_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="publish",
                    message=f"failed to create draft release {draft.tag}",
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(result.value.strip())


class DryRunPublisher:
    """Keep drafts in memory instead of creating them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.drafts: list[ReleaseDraft] = []

    def create_draft(self, draft: ReleaseDraft) -> Result[str, PipelineError]:
        with self._lock:
            self.drafts.append(draft)
            n = len(self.drafts)
        return Ok(f"(dry-run) draft #{n} for {draft.tag}")
