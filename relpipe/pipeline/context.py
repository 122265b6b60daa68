from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from relpipe.output.console import ConsoleProtocol
from relpipe.pipeline.config import PipelineConfig
from relpipe.pipeline.store import ArtifactStore


@dataclass(frozen=True, slots=True)
class RunContext:
    """Run-wide settings handed to every stage.

    The same instance is shared by all stages of a run; stages never mutate
    it. The only shared mutable resource it exposes is `store`.
    """

    trigger_ref: str
    config: PipelineConfig
    workspace_root: Path  # source checkout: build cwd and changelog history
    work_dir: Path  # local job storage, one subdirectory per stage
    store: ArtifactStore
    console: ConsoleProtocol

    def job_dir(self, name: str) -> Path:
        path = self.work_dir / name
        path.mkdir(parents=True, exist_ok=True)
        return path
