from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import InstallFailure, MissingPrerequisite
from ..pipeline import StageCtx

logger = logging.getLogger(__name__)


class InstallDmgStage:
    """Open the disk image; mounting itself is up to the OS."""

    name = "install"
    description = "Mount disk image"
    requires = ("dmg",)

    def output(self, ctx: StageCtx) -> Optional[Path]:
        return None

    def inputs(self, ctx: StageCtx) -> List[Path]:
        return [ctx.cfg.dmg_path]

    def fingerprint(self, ctx: StageCtx) -> Dict[str, Any]:
        return {}

    def check(self, ctx: StageCtx) -> None:
        if not ctx.cfg.dmg_path.is_file():
            raise MissingPrerequisite(self.name, ctx.cfg.dmg_path, "disk image")

    def run(self, ctx: StageCtx) -> None:
        cfg = ctx.cfg
        res = ctx.runner([cfg.open_command, str(cfg.dmg_path)], cwd=str(cfg.project_root))
        if res.returncode != 0:
            raise InstallFailure(self.name, res.returncode, res.output)
        logger.info("Opened %s", cfg.dmg_path)
