"""Release body rendering.

render_release_body is a pure function of the template and the values, so
the body can be previewed (`relpipe render`) without building anything.
Placeholders use string.Template syntax; unknown ones are left as-is.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from string import Template

from relpipe.pipeline.model import (
    ChangelogEntry,
    OsFamily,
    ReleaseTag,
    TargetSpec,
    archive_name,
    signature_name,
)

_OS_ICONS: dict[OsFamily, str] = {
    "linux": "https://simpleicons.org/icons/linux.svg",
    "macos": "https://simpleicons.org/icons/apple.svg",
    "windows": "https://simpleicons.org/icons/windows.svg",
}
_DOCKER_ICON = "https://simpleicons.org/icons/docker.svg"

EMPTY_CHANGELOG = "- No changes."

DEFAULT_TEMPLATE = """\
<Release Name>

## Testing Checklist (DELETE ME)

- [ ] Run on testnet for 1-3 days.
- [ ] Resync a mainnet node.
- [ ] Ensure all CI checks pass.

## Release Checklist (DELETE ME)

- [ ] Ensure all crates have had their versions bumped.
- [ ] Write the summary.
- [ ] Fill out the update priority.
- [ ] Ensure all binaries have been added.
- [ ] Prepare release posts (Twitter, ...).

## Summary

Add a summary, including:

- Critical bug fixes
- New features
- Any breaking changes (and what to expect)

## Update Priority

This table provides priorities for which classes of users should update particular components.

| User Class           | Priority        |
|----------------------|-----------------|
| Payload Builders     | <TODO> |
| Non-Payload Builders | <TODO>    |

*See [Update Priorities]($docs_url/installation/priorities.html) for more information about this table.*

## All Changes

$changelog

## Binaries

[See pre-built binaries documentation.]($docs_url/installation/binaries.html)

The binaries are signed with the PGP key: `$signing_key`

| System | Architecture | Binary | PGP Signature |
|:---:|:---:|:---:|:---|
$binaries
| | | | |
| **System** | **Option** | - | **Resource** |
| $docker_icon | Docker | [$tag](https://github.com/$repo/pkgs/container/$image_name?tag=$tag) | [$image](https://github.com/$repo/pkgs/container/$image_name) |
"""


@dataclass(frozen=True, slots=True)
class DownloadLink:
    os_family: OsFamily
    cpu: str
    archive: str
    archive_url: str
    signature_url: str


@dataclass(frozen=True, slots=True)
class BodyValues:
    tag: ReleaseTag
    changelog: tuple[ChangelogEntry, ...]
    links: tuple[DownloadLink, ...]
    repo: str
    image: str
    signing_key: str
    docs_url: str


def release_download_url(repo: str, tag: ReleaseTag, filename: str) -> str:
    return f"https://github.com/{repo}/releases/download/{tag}/{filename}"


def download_links(
    *, repo: str, product: str, tag: ReleaseTag, targets: Sequence[TargetSpec]
) -> tuple[DownloadLink, ...]:
    """One link per target, in configured order."""
    out: list[DownloadLink] = []
    for t in targets:
        archive = archive_name(product, tag, t.arch)
        out.append(
            DownloadLink(
                os_family=t.os_family,
                cpu=t.cpu,
                archive=archive,
                archive_url=release_download_url(repo, tag, archive),
                signature_url=release_download_url(repo, tag, signature_name(archive)),
            )
        )
    return tuple(out)


def _icon(url: str) -> str:
    return f'<img src="{url}" style="width: 32px;"/>'


def render_changelog(entries: Sequence[ChangelogEntry]) -> str:
    if not entries:
        return EMPTY_CHANGELOG
    return "\n".join(e.render() for e in entries)


def render_binaries(links: Sequence[DownloadLink]) -> str:
    return "\n".join(
        f"| {_icon(_OS_ICONS[link.os_family])} | {link.cpu} "
        f"| [{link.archive}]({link.archive_url}) "
        f"| [PGP Signature]({link.signature_url}) |"
        for link in links
    )


def render_release_body(template: str, values: BodyValues) -> str:
    return Template(template).safe_substitute(
        tag=values.tag.value,
        changelog=render_changelog(values.changelog),
        binaries=render_binaries(values.links),
        repo=values.repo,
        image=values.image,
        image_name=values.image.rsplit("/", 1)[-1],
        signing_key=values.signing_key,
        docs_url=values.docs_url,
        docker_icon=_icon(_DOCKER_ICON),
    )
