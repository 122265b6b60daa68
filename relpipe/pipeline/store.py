"""Write-once artifact store.

Build jobs put their archive and signature here; the publish stage reads
them back with get_all(prefix). A key can be written exactly once, which is
what keeps each target at one archive and one signature per run.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Protocol

from relpipe.core.result import Err, Ok, Result
from relpipe.pipeline.errors import PipelineError

__all__ = [
    "ArtifactStore",
    "DirectoryArtifactStore",
    "MemoryArtifactStore",
]


class ArtifactStore(Protocol):
    def put(self, key: str, blob: bytes) -> Result[None, PipelineError]: ...

    def get(self, key: str) -> Result[bytes, PipelineError]: ...

    def get_all(self, prefix: str) -> dict[str, bytes]: ...

    def keys(self) -> list[str]: ...


def _exists_error(key: str) -> Err[PipelineError]:
    return Err(
        PipelineError(
            kind="store",
            message=f"artifact already stored: {key}",
            hint="artifact keys are write-once",
        )
    )


def _missing_error(key: str) -> Err[PipelineError]:
    return Err(PipelineError(kind="store", message=f"artifact not found: {key}"))


def _write_error(key: str, e: OSError) -> Err[PipelineError]:
    return Err(PipelineError(kind="store", message=f"failed to store artifact: {key}", hint=str(e)))


class MemoryArtifactStore:
    """In-process store shared by worker threads."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, key: str, blob: bytes) -> Result[None, PipelineError]:
        with self._lock:
            if key in self._blobs:
                return _exists_error(key)
            self._blobs[key] = bytes(blob)
        return Ok(None)

    def get(self, key: str) -> Result[bytes, PipelineError]:
        with self._lock:
            blob = self._blobs.get(key)
        if blob is None:
            return _missing_error(key)
        return Ok(blob)

    def get_all(self, prefix: str) -> dict[str, bytes]:
        with self._lock:
            return {k: v for k, v in self._blobs.items() if k.startswith(prefix)}

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._blobs)


class DirectoryArtifactStore:
    """One file per key under `root`.

    Exclusive-create makes the write-once check atomic across processes, so
    separate `relpipe build` invocations can share one directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def _path(self, key: str) -> Path | None:
        if not key or key in {".", ".."} or "/" in key or "\\" in key:
            return None
        return self.root / key

    def put(self, key: str, blob: bytes) -> Result[None, PipelineError]:
        path = self._path(key)
        if path is None:
            return Err(PipelineError(kind="store", message=f"invalid artifact key: {key!r}"))

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            f = path.open("xb")
        except FileExistsError:
            return _exists_error(key)
        except OSError as e:
            return _write_error(key, e)

        try:
            with f:
                f.write(blob)
        except OSError as e:
            # Free the key so a retry can write it.
            path.unlink(missing_ok=True)
            return _write_error(key, e)
        return Ok(None)

    def get(self, key: str) -> Result[bytes, PipelineError]:
        path = self._path(key)
        if path is None or not path.is_file():
            return _missing_error(key)
        try:
            return Ok(path.read_bytes())
        except OSError as e:
            return Err(
                PipelineError(kind="store", message=f"failed to read artifact: {key}", hint=str(e))
            )

    def get_all(self, prefix: str) -> dict[str, bytes]:
        out: dict[str, bytes] = {}
        for key in self.keys():
            if not key.startswith(prefix):
                continue
            blob = self.get(key)
            if isinstance(blob, Ok):
                out[key] = blob.value
        return out

    def keys(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_file())
