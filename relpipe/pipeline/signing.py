"""Detached GPG signatures for release archives.

Each call imports the signing key into a fresh GNUPGHOME that is deleted
when the call returns; nothing survives between jobs. The passphrase is only
ever written to gpg's stdin.
"""

from __future__ import annotations

import base64
import binascii
import os
import tempfile
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from relpipe.core.result import Err, Ok, Result
from relpipe.pipeline.errors import PipelineError
from relpipe.pipeline.model import signature_name
from relpipe.platform.process import run as run_process

__all__ = [
    "ENV_SIGNING_KEY",
    "ENV_PASSPHRASE",
    "GpgSigner",
    "Signer",
    "SigningSecrets",
    "verify_signature",
    "without_secrets",
]

ENV_SIGNING_KEY = "GPG_SIGNING_KEY"
ENV_PASSPHRASE = "GPG_PASSPHRASE"
SECRET_ENV_VARS = (ENV_SIGNING_KEY, ENV_PASSPHRASE)

_GPG_TIMEOUT_SECONDS = 2 * 60.0


@dataclass(frozen=True, slots=True)
class SigningSecrets:
    key_b64: str = field(repr=False)
    passphrase: str = field(repr=False)

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> Result[SigningSecrets, PipelineError]:
        key = env.get(ENV_SIGNING_KEY, "")
        passphrase = env.get(ENV_PASSPHRASE)
        if not key.strip() or passphrase is None:
            return Err(
                PipelineError(
                    kind="environment",
                    message="signing secrets missing",
                    hint=f"set {ENV_SIGNING_KEY} (base64 private key) and {ENV_PASSPHRASE}",
                )
            )
        return Ok(cls(key_b64=key, passphrase=passphrase))

    @classmethod
    def take_from_env(
        cls, env: MutableMapping[str, str]
    ) -> Result[SigningSecrets, PipelineError]:
        """Like `from_env`, then drop both variables from `env`.

        Called on `os.environ` so builds, git and gh never inherit the key.
        """
        secrets = cls.from_env(env)
        for name in SECRET_ENV_VARS:
            env.pop(name, None)
        return secrets


def without_secrets(env: Mapping[str, str]) -> dict[str, str]:
    """Copy of `env` for child processes, minus the signing variables."""
    return {k: v for k, v in env.items() if k not in SECRET_ENV_VARS}


class Signer(Protocol):
    def sign(self, archive: Path) -> Result[Path, PipelineError]:
        """Write `<archive>.asc` next to the archive and return its path."""
        ...


def _decode_key(key_b64: str) -> Result[bytes, PipelineError]:
    try:
        raw = base64.b64decode("".join(key_b64.split()), validate=True)
    except (binascii.Error, ValueError):
        # The error text could echo key material; keep it out of the hint.
        return Err(PipelineError(kind="signing", message="signing key is not valid base64"))
    if not raw:
        return Err(PipelineError(kind="signing", message="signing key is empty"))
    return Ok(raw)


class _EphemeralKeyring:
    """Temporary GNUPGHOME, removed (agent included) on exit."""

    def __init__(self) -> None:
        self._tmp = tempfile.TemporaryDirectory(prefix="relpipe-gpg-", ignore_cleanup_errors=True)
        self.home = Path(self._tmp.name)
        os.chmod(self.home, 0o700)
        self.env = {**without_secrets(os.environ), "GNUPGHOME": str(self.home)}

    def __enter__(self) -> _EphemeralKeyring:
        return self

    def __exit__(self, *exc: object) -> None:
        run_process(
            ["gpgconf", "--kill", "gpg-agent"],
            cwd=self.home,
            env=self.env,
            timeout=_GPG_TIMEOUT_SECONDS,
        )
        self._tmp.cleanup()

    def import_key(self, key: bytes, *, what: str) -> Result[None, PipelineError]:
        key_path = self.home / "import.key"
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(key)
        try:
            result = run_process(
                ["gpg", "--batch", "--import", str(key_path)],
                cwd=self.home,
                env=self.env,
                timeout=_GPG_TIMEOUT_SECONDS,
            )
        finally:
            key_path.unlink(missing_ok=True)

        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="signing",
                    message=f"failed to import {what}",
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(None)


class GpgSigner:
    """Sign archives with `gpg --armor --detach-sign`."""

    def __init__(self, secrets: SigningSecrets) -> None:
        self._secrets = secrets

    def __repr__(self) -> str:
        return "GpgSigner()"

    def sign(self, archive: Path) -> Result[Path, PipelineError]:
        key = _decode_key(self._secrets.key_b64)
        if isinstance(key, Err):
            return key

        signature = archive.with_name(signature_name(archive.name))
        with _EphemeralKeyring() as keyring:
            imported = keyring.import_key(key.value, what="signing key")
            if isinstance(imported, Err):
                return imported

            result = run_process(
                [
                    "gpg",
                    "--batch",
                    "--yes",
                    "--pinentry-mode",
                    "loopback",
                    "--passphrase-fd",
                    "0",
                    "--armor",
                    "--detach-sign",
                    "--output",
                    str(signature),
                    str(archive),
                ],
                cwd=archive.parent,
                env=keyring.env,
                input=self._secrets.passphrase + "\n",
                timeout=_GPG_TIMEOUT_SECONDS,
            )
        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="signing",
                    message=f"failed to sign {archive.name}",
                    hint=result.error.stderr.strip() or None,
                )
            )
        return Ok(signature)


def verify_signature(
    archive: Path,
    signature: Path,
    public_key: str,
) -> Result[None, PipelineError]:
    """Check a detached signature against an armored public key."""
    with _EphemeralKeyring() as keyring:
        imported = keyring.import_key(public_key.encode("utf-8"), what="public key")
        if isinstance(imported, Err):
            return imported

        result = run_process(
            ["gpg", "--batch", "--verify", str(signature), str(archive)],
            cwd=archive.parent,
            env=keyring.env,
            timeout=_GPG_TIMEOUT_SECONDS,
        )
    if isinstance(result, Err):
        return Err(
            PipelineError(
                kind="signing",
                message=f"bad signature for {archive.name}",
                hint=result.error.stderr.strip() or None,
            )
        )
    return Ok(None)
