from __future__ import annotations

import typer

from relpipe.cli.commands._helpers import unwrap_or_exit
from relpipe.cli.context import build_context
from relpipe.git.repository import Repository
from relpipe.pipeline.changelog import generate_changelog
from relpipe.pipeline.model import ChangelogEntry
from relpipe.pipeline.template import (
    DEFAULT_TEMPLATE,
    BodyValues,
    download_links,
    render_changelog,
    render_release_body,
)
from relpipe.pipeline.version import resolve_version


def changelog(
    tag: str = typer.Option(..., "--tag", help="Release tag"),
) -> None:
    """Print the changelog since the previous tag."""
    ctx = build_context()
    release_tag = unwrap_or_exit(resolve_version(tag), ctx)
    entries = unwrap_or_exit(generate_changelog(Repository(ctx.workspace_root), release_tag), ctx)
    typer.echo(render_changelog(entries))


def render(
    tag: str = typer.Option(..., "--tag", help="Release tag"),
    with_changelog: bool = typer.Option(
        True, "--changelog/--no-changelog", help="Include commit history from git"
    ),
) -> None:
    """Print the draft release body for a tag."""
    ctx = build_context()
    config = ctx.config
    release_tag = unwrap_or_exit(resolve_version(tag), ctx)

    entries: tuple[ChangelogEntry, ...] = ()
    if with_changelog:
        entries = unwrap_or_exit(
            generate_changelog(Repository(ctx.workspace_root), release_tag), ctx
        )

    body = render_release_body(
        DEFAULT_TEMPLATE,
        BodyValues(
            tag=release_tag,
            changelog=entries,
            links=download_links(
                repo=config.repo, product=config.product, tag=release_tag, targets=config.targets
            ),
            repo=config.repo,
            image=config.image,
            signing_key=config.signing_key,
            docs_url=config.docs_url,
        ),
    )
    typer.echo(body, nl=False)
