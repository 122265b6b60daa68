"""Stage graph execution.

A Coordinator runs every stage whose dependencies have all succeeded,
concurrently on a thread pool, and holds back dependents until then. A
failed stage blocks everything downstream of it but never cancels its
siblings: they run to completion and their outputs stay in the store.

Example:
    >>> stages = [
    ...     Stage("version", resolve),
    ...     Stage("build-a", build_a, depends_on=("version",)),
    ...     Stage("build-b", build_b, depends_on=("version",)),
    ...     Stage("publish", publish, depends_on=("build-a", "build-b")),
    ... ]
    >>> report = Coordinator(stages, max_workers=2).run(ctx)
    >>> report.ok
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal

from relpipe.core.result import Err, Ok, Result
from relpipe.pipeline.context import RunContext
from relpipe.pipeline.errors import PipelineError, PipelineErrorKind

logger = logging.getLogger(__name__)

StageStatus = Literal["succeeded", "failed", "blocked"]


@dataclass(frozen=True, slots=True)
class StageContext:
    """What a stage sees: the run context plus its dependencies' outputs."""

    run: RunContext
    inputs: Mapping[str, object]

    def input(self, name: str) -> object:
        return self.inputs[name]


StageFn = Callable[[StageContext], Result[object, PipelineError]]


@dataclass(frozen=True, slots=True)
class Stage:
    name: str
    run: StageFn
    depends_on: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class StageOutcome:
    name: str
    status: StageStatus
    output: object = None
    error: PipelineError | None = None
    duration_seconds: float = 0.0


@dataclass(frozen=True, slots=True)
class RunReport:
    """Outcomes in the order stages finished (blocked stages included)."""

    outcomes: tuple[StageOutcome, ...]

    @property
    def ok(self) -> bool:
        return all(o.status == "succeeded" for o in self.outcomes)

    def outcome(self, name: str) -> StageOutcome | None:
        for o in self.outcomes:
            if o.name == name:
                return o
        return None

    def output(self, name: str) -> object:
        o = self.outcome(name)
        return None if o is None else o.output

    @property
    def failed(self) -> tuple[StageOutcome, ...]:
        return tuple(o for o in self.outcomes if o.status == "failed")

    @property
    def first_failure(self) -> StageOutcome | None:
        failed = self.failed
        return failed[0] if failed else None


def validate_stages(stages: Sequence[Stage]) -> None:
    """Reject duplicate names, unknown dependencies and cycles.

    Raises:
        ValueError: If the graph is not a DAG of known stages.
    """
    names: set[str] = set()
    for s in stages:
        if s.name in names:
            raise ValueError(f"duplicate stage name: {s.name}")
        names.add(s.name)

    for s in stages:
        for dep in s.depends_on:
            if dep not in names:
                raise ValueError(f"stage {s.name!r} depends on unknown stage {dep!r}")

    by_name = {s.name: s for s in stages}
    visiting: set[str] = set()
    visited: set[str] = set()

    def visit(name: str, path: tuple[str, ...]) -> None:
        if name in visited:
            return
        if name in visiting:
            cycle = " -> ".join((*path, name))
            raise ValueError(f"stage graph has a cycle: {cycle}")
        visiting.add(name)
        for dep in by_name[name].depends_on:
            visit(dep, (*path, name))
        visiting.discard(name)
        visited.add(name)

    for s in stages:
        visit(s.name, ())


def _execute(stage: Stage, ctx: StageContext) -> StageOutcome:
    start = time.monotonic()
    logger.debug("stage %s started", stage.name)
    try:
        result = stage.run(ctx)
    except Exception as e:  # noqa: BLE001 - a crashing stage fails only itself
        logger.exception("stage %s raised", stage.name)
        result = Err(PipelineError(kind="internal", message=f"{stage.name} crashed: {e}"))

    duration = time.monotonic() - start
    match result:
        case Ok(value):
            logger.info("stage %s succeeded in %.1fs", stage.name, duration)
            return StageOutcome(stage.name, "succeeded", output=value, duration_seconds=duration)
        case Err(error):
            logger.error("stage %s failed: %s", stage.name, error.pretty())
            return StageOutcome(stage.name, "failed", error=error, duration_seconds=duration)


class Coordinator:
    """Run a stage graph with at most `max_workers` stages in flight."""

    def __init__(
        self,
        stages: Sequence[Stage],
        *,
        max_workers: int = 4,
        on_finish: Callable[[StageOutcome], None] | None = None,
    ) -> None:
        validate_stages(stages)
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.stages = tuple(stages)
        self.max_workers = max_workers
        self._on_finish = on_finish

    def run(self, ctx: RunContext) -> RunReport:
        pending: dict[str, Stage] = {s.name: s for s in self.stages}
        done: dict[str, StageOutcome] = {}
        order: list[StageOutcome] = []

        def finish(outcome: StageOutcome) -> None:
            done[outcome.name] = outcome
            order.append(outcome)
            if self._on_finish is not None:
                self._on_finish(outcome)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            running: dict[Future[StageOutcome], str] = {}
            while pending or running:
                progressed = True
                while progressed:
                    progressed = False
                    for name, stage in list(pending.items()):
                        deps = stage.depends_on
                        bad = [d for d in deps if d in done and done[d].status != "succeeded"]
                        if bad:
                            del pending[name]
                            logger.warning("stage %s blocked by %s", name, ", ".join(bad))
                            finish(
                                StageOutcome(
                                    name,
                                    "blocked",
                                    error=PipelineError(
                                        kind=_blocking_kind(done, bad),
                                        message=f"{name} blocked by failed {', '.join(bad)}",
                                    ),
                                )
                            )
                            progressed = True
                        elif all(d in done for d in deps):
                            del pending[name]
                            inputs = MappingProxyType({d: done[d].output for d in deps})
                            future = pool.submit(_execute, stage, StageContext(ctx, inputs))
                            running[future] = name

                if not running:
                    break

                finished, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in finished:
                    running.pop(future)
                    finish(future.result())

        return RunReport(outcomes=tuple(order))


def _blocking_kind(
    done: Mapping[str, StageOutcome], bad: Sequence[str]
) -> PipelineErrorKind:
    for name in bad:
        error = done[name].error
        if error is not None:
            return error.kind
    return "internal"
