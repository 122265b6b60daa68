from __future__ import annotations

from relpipe.pipeline.config import PipelineConfig
from relpipe.pipeline.model import ChangelogEntry, ReleaseTag
from relpipe.pipeline.template import (
    DEFAULT_TEMPLATE,
    EMPTY_CHANGELOG,
    BodyValues,
    download_links,
    render_binaries,
    render_changelog,
    render_release_body,
)

TAG = ReleaseTag("v1.2.3")


def _values(changelog: tuple[ChangelogEntry, ...] = ()) -> BodyValues:
    config = PipelineConfig()
    return BodyValues(
        tag=TAG,
        changelog=changelog,
        links=download_links(
            repo=config.repo, product=config.product, tag=TAG, targets=config.targets
        ),
        repo=config.repo,
        image=config.image,
        signing_key=config.signing_key,
        docs_url=config.docs_url,
    )


def test_download_links_follow_target_order() -> None:
    links = _values().links
    assert [(link.os_family, link.cpu) for link in links] == [
        ("linux", "aarch64"),
        ("linux", "x86_64"),
        ("macos", "x86_64"),
        ("macos", "aarch64"),
        ("windows", "x86_64"),
    ]
    win = links[-1]
    assert win.archive == "reth-v1.2.3-x86_64-pc-windows-gnu.tar.gz"
    assert win.archive_url == (
        "https://github.com/paradigmxyz/reth/releases/download/v1.2.3/"
        "reth-v1.2.3-x86_64-pc-windows-gnu.tar.gz"
    )
    assert win.signature_url == win.archive_url + ".asc"


def test_render_changelog() -> None:
    entries = (ChangelogEntry("feat: a"), ChangelogEntry("fix: b"))
    assert render_changelog(entries) == "- feat: a\n- fix: b"
    assert render_changelog(()) == EMPTY_CHANGELOG


def test_render_binaries_row() -> None:
    row = render_binaries(_values().links[:1])
    assert row.startswith('| <img src="https://simpleicons.org/icons/linux.svg"')
    assert "| aarch64 |" in row
    assert "[reth-v1.2.3-aarch64-unknown-linux-gnu.tar.gz](" in row
    assert row.endswith("reth-v1.2.3-aarch64-unknown-linux-gnu.tar.gz.asc) |")


def test_body_has_required_sections() -> None:
    body = render_release_body(DEFAULT_TEMPLATE, _values((ChangelogEntry("feat: x"),)))
    for section in (
        "<Release Name>",
        "## Testing Checklist (DELETE ME)",
        "## Release Checklist (DELETE ME)",
        "## Summary",
        "## Update Priority",
        "## All Changes",
        "## Binaries",
    ):
        assert section in body
    assert "## All Changes\n\n- feat: x\n" in body
    assert "`A3AE 097C 8909 3A12 4049  DF1F 5391 A3C4 1005 30B4`" in body
    assert "https://paradigmxyz.github.io/reth/installation/priorities.html" in body
    assert body.count("[PGP Signature](") == 5
    assert "pkgs/container/reth?tag=v1.2.3" in body
    assert "$" not in body


def test_render_is_pure() -> None:
    values = _values((ChangelogEntry("a"),))
    assert render_release_body(DEFAULT_TEMPLATE, values) == render_release_body(
        DEFAULT_TEMPLATE, values
    )


def test_custom_template_and_unknown_placeholders() -> None:
    body = render_release_body("# $tag\n$changelog\n$unknown", _values((ChangelogEntry("x"),)))
    assert body == "# v1.2.3\n- x\n$unknown"


def test_dollar_in_commit_subject_is_not_expanded() -> None:
    body = render_release_body("$changelog", _values((ChangelogEntry("bump $tag handling"),)))
    assert body == "- bump $tag handling"
