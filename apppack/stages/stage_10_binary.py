from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import BuildFailure
from ..pipeline import StageCtx

logger = logging.getLogger(__name__)


class BuildBinaryStage:
    name = "binary"
    description = "Build binary with cargo"
    requires = ()

    def output(self, ctx: StageCtx) -> Optional[Path]:
        return ctx.cfg.executable_path

    def inputs(self, ctx: StageCtx) -> List[Path]:
        # Source changes are tracked by the compiler itself.
        return []

    def fingerprint(self, ctx: StageCtx) -> Dict[str, Any]:
        return {
            "mode": ctx.cfg.mode,
            "features": ctx.cfg.features,
            "build_command": list(ctx.cfg.build_command),
        }

    def check(self, ctx: StageCtx) -> None:
        return None

    def command(self, ctx: StageCtx) -> List[str]:
        argv = list(ctx.cfg.build_command)
        if not ctx.cfg.debug:
            argv.append("--release")
        argv += ["--no-default-features", f"--features={ctx.cfg.features}"]
        return argv

    def run(self, ctx: StageCtx) -> None:
        cfg = ctx.cfg
        res = ctx.runner(self.command(ctx), cwd=str(cfg.project_root))
        if res.returncode != 0:
            raise BuildFailure(self.name, res.returncode, res.output)

        if not cfg.executable_path.is_file():
            raise BuildFailure(
                self.name,
                res.returncode,
                res.output,
                message=f"[{self.name}] compiler succeeded but produced no executable at {cfg.executable_path}",
            )

        logger.info("Built %s (%s, features=%s)", cfg.executable_path, cfg.mode, cfg.features)
