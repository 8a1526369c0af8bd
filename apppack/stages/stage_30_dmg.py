from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import MissingPrerequisite, PackagingFailure
from ..pipeline import StageCtx

logger = logging.getLogger(__name__)


class PackageDmgStage:
    name = "dmg"
    description = "Pack {cfg.app_name} into .dmg"
    requires = ("app",)

    def output(self, ctx: StageCtx) -> Optional[Path]:
        return ctx.cfg.dmg_path

    def inputs(self, ctx: StageCtx) -> List[Path]:
        return [ctx.cfg.bundle_path]

    def fingerprint(self, ctx: StageCtx) -> Dict[str, Any]:
        cfg = ctx.cfg
        return {
            "volume_name": cfg.volume_name,
            "dmg_filesystem": cfg.dmg_filesystem,
            "dmg_format": cfg.dmg_format,
        }

    def check(self, ctx: StageCtx) -> None:
        cfg = ctx.cfg
        if not cfg.bundled_executable.is_file():
            raise MissingPrerequisite(self.name, cfg.bundle_path, "complete bundle")

    def command(self, ctx: StageCtx) -> List[str]:
        cfg = ctx.cfg
        return [
            "hdiutil",
            "create",
            str(cfg.dmg_path),
            "-volname",
            cfg.volume_name,
            "-fs",
            cfg.dmg_filesystem,
            "-srcfolder",
            str(cfg.bundle_path),
            "-ov",
            "-format",
            cfg.dmg_format,
        ]

    def run(self, ctx: StageCtx) -> None:
        cfg = ctx.cfg
        print("Packing disk image...")
        res = ctx.runner(self.command(ctx), cwd=str(cfg.project_root))
        if res.returncode != 0:
            # Whatever hdiutil left behind is not recorded as present.
            raise PackagingFailure(self.name, res.returncode, res.output)
        if not cfg.dmg_path.is_file():
            raise PackagingFailure(
                self.name,
                res.returncode,
                res.output,
                message=f"[{self.name}] disk image utility succeeded but wrote no {cfg.dmg_path}",
            )

        logger.info("Packed %s", cfg.dmg_path)
        print(f"Packed '{cfg.dmg_name}' in '{cfg.app_dir}'")
