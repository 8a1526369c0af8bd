from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Protocol, Sequence, Tuple

from .build_config import PARAMETERS, BuildConfig
from .errors import DependencyFailure, GraphError, PipelineError, UnknownStage
from .lib.assets import newest_mtime
from .lib.command import CommandRunner, default_runner
from .state_store import (
    ensure_defaults,
    is_stage_present,
    load_state,
    mark_stage_building,
    mark_stage_failed,
    mark_stage_present,
    save_state,
    stage_record,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageCtx:
    cfg: BuildConfig
    runner: CommandRunner = field(default=default_runner)


class Stage(Protocol):
    """One pipeline step producing (at most) one artifact."""

    name: str
    description: str
    requires: Tuple[str, ...]

    def output(self, ctx: StageCtx) -> Optional[Path]:
        ...

    def inputs(self, ctx: StageCtx) -> List[Path]:
        ...

    def fingerprint(self, ctx: StageCtx) -> Dict[str, Any]:
        ...

    def check(self, ctx: StageCtx) -> None:
        ...

    def run(self, ctx: StageCtx) -> None:
        ...


@dataclass(frozen=True)
class PipelineResult:
    ran_stages: List[str]
    skipped_stages: List[str]


def _toposort(stages: Dict[str, Stage]) -> List[str]:
    order: List[str] = []
    marks: Dict[str, str] = {}

    def visit(name: str, path: Tuple[str, ...]) -> None:
        if marks.get(name) == "done":
            return
        if marks.get(name) == "active":
            raise GraphError(f"Dependency cycle: {' -> '.join(path + (name,))}")
        marks[name] = "active"
        for dep in stages[name].requires:
            if dep not in stages:
                raise GraphError(f"Stage {name!r} requires unknown stage {dep!r}")
            visit(dep, path + (name,))
        marks[name] = "done"
        order.append(name)

    for name in stages:
        visit(name, ())
    return order


class Orchestrator:
    """Runs stages of a dependency graph in order, skipping current ones.

    Invocations are not locked against each other: two pipelines sharing a
    release directory at the same time will corrupt each other's artifacts.
    """

    def __init__(self, ctx: StageCtx, stages: Sequence[Stage]) -> None:
        self.ctx = ctx
        self._stages: Dict[str, Stage] = {}
        for s in stages:
            if s.name in self._stages:
                raise GraphError(f"Duplicate stage name: {s.name}")
            self._stages[s.name] = s
        self._order = _toposort(self._stages)

    @property
    def stage_names(self) -> List[str]:
        return list(self._order)

    def resolve(self, stage: str) -> List[Stage]:
        """Return ``stage`` and all its prerequisites in dependency order."""
        if stage not in self._stages:
            raise UnknownStage(stage)

        needed = set()
        pending = [stage]
        while pending:
            name = pending.pop()
            if name in needed:
                continue
            needed.add(name)
            pending.extend(self._stages[name].requires)
        return [self._stages[n] for n in self._order if n in needed]

    def _load_state(self) -> Dict[str, Any]:
        return ensure_defaults(load_state(self.ctx.cfg.state_path))

    def _save_state(self, state: Dict[str, Any]) -> None:
        save_state(self.ctx.cfg.state_path, state)

    def is_current(self, stage: Stage, state: Dict[str, Any]) -> bool:
        if not is_stage_present(state, stage.name):
            return False
        rec = stage_record(state, stage.name)

        out = stage.output(self.ctx)
        if out is None or not out.exists():
            return False

        if rec.get("fingerprint") != stage.fingerprint(self.ctx):
            logger.info("Stage %s is stale: configuration changed", stage.name)
            return False

        completed_at = float(rec.get("completed_at") or 0.0)
        for dep in stage.requires:
            if float(stage_record(state, dep).get("completed_at") or 0.0) > completed_at:
                logger.info("Stage %s is stale: %s was rebuilt", stage.name, dep)
                return False
        for p in stage.inputs(self.ctx):
            # A vanished input must reach check() and fail there.
            if not p.exists():
                logger.info("Stage %s is stale: %s is missing", stage.name, p)
                return False
            if newest_mtime(p) > completed_at:
                logger.info("Stage %s is stale: %s changed", stage.name, p)
                return False
        return True

    def plan(self, stage: str, *, force: bool = False) -> List[Tuple[str, bool]]:
        """Which stages ``run(stage)`` would execute, without executing anything."""
        state = self._load_state()
        will_run: Dict[str, bool] = {}
        for s in self.resolve(stage):
            will_run[s.name] = (
                force
                or any(will_run.get(d, False) for d in s.requires)
                or not self.is_current(s, state)
            )
        return list(will_run.items())

    def run(self, stage: str, *, force: bool = False) -> PipelineResult:
        """Execute ``stage`` and every prerequisite that is missing or stale.

        The first failure aborts the pipeline. Failures of a prerequisite are
        raised as DependencyFailure chained to the original error.
        """

        plan = self.resolve(stage)
        state = self._load_state()
        ran: List[str] = []
        skipped: List[str] = []

        for s in plan:
            if (not force) and self.is_current(s, state):
                logger.info("Skipping stage %s (up to date)", s.name)
                skipped.append(s.name)
                continue

            try:
                s.check(self.ctx)
            except PipelineError as e:
                logger.error("Stage %s cannot run: %s", s.name, e)
                self._raise_for(stage, s, e)

            logger.info("Running stage %s", s.name)
            mark_stage_building(state, s.name)
            self._save_state(state)
            try:
                s.run(self.ctx)
            except PipelineError as e:
                mark_stage_failed(state, s.name, str(e))
                self._save_state(state)
                logger.error("Stage %s failed: %s", s.name, e)
                self._raise_for(stage, s, e)
            except KeyboardInterrupt:
                mark_stage_failed(state, s.name, "interrupted")
                self._save_state(state)
                logger.error("Stage %s interrupted", s.name)
                raise

            mark_stage_present(state, s.name, output=s.output(self.ctx), fingerprint=s.fingerprint(self.ctx))
            self._save_state(state)
            ran.append(s.name)

        return PipelineResult(ran_stages=ran, skipped_stages=skipped)

    @staticmethod
    def _raise_for(requested: str, failed: Stage, error: PipelineError) -> NoReturn:
        if failed.name != requested:
            raise DependencyFailure(requested, failed.name, error) from error
        raise error

    def clean(self) -> None:
        """Remove the release directory of the configured build mode."""
        rd = self.ctx.cfg.release_dir
        if rd.is_symlink():
            rd.unlink()
        elif rd.exists():
            logger.info("Removing %s", rd)
            shutil.rmtree(rd, ignore_errors=True)
        else:
            logger.info("Nothing to clean at %s", rd)

        if rd.exists():
            logger.warning("Could not fully remove %s", rd)

    def describe(self) -> Dict[str, List[Tuple[str, ...]]]:
        cfg = self.ctx.cfg
        stages = [(name, self._stages[name].description.format(cfg=cfg)) for name in self._order]
        params = [(name, default, desc) for name, (default, desc) in PARAMETERS.items()]
        return {"stages": stages, "parameters": params}

