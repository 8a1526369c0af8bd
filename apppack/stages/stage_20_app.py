from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import BundleAssemblyFailure, MissingPrerequisite
from ..lib.assets import copy_file, copy_tree
from ..pipeline import StageCtx

logger = logging.getLogger(__name__)


class BundleAppStage:
    name = "app"
    description = "Clone {cfg.app_name} template and mount binary"
    requires = ("binary",)

    def output(self, ctx: StageCtx) -> Optional[Path]:
        return ctx.cfg.bundle_path

    def inputs(self, ctx: StageCtx) -> List[Path]:
        return [ctx.cfg.executable_path, ctx.cfg.template_path]

    def fingerprint(self, ctx: StageCtx) -> Dict[str, Any]:
        return {"app_name": ctx.cfg.app_name, "app_template": ctx.cfg.app_template}

    def check(self, ctx: StageCtx) -> None:
        cfg = ctx.cfg
        if not cfg.executable_path.is_file():
            raise MissingPrerequisite(self.name, cfg.executable_path, "executable")
        if not cfg.template_path.is_dir():
            raise MissingPrerequisite(self.name, cfg.template_path, "bundle template")

    def run(self, ctx: StageCtx) -> None:
        cfg = ctx.cfg
        bundle = cfg.bundle_path

        current = bundle
        try:
            # A re-run replaces the previous bundle rather than merging into it.
            if bundle.is_symlink() or bundle.is_file():
                bundle.unlink()
            elif bundle.exists():
                shutil.rmtree(bundle)

            current = cfg.bundle_binary_dir
            current.mkdir(parents=True, exist_ok=True)

            current = bundle
            copy_tree(str(cfg.template_path), str(bundle))

            current = cfg.bundled_executable
            copy_file(str(cfg.executable_path), str(cfg.bundle_binary_dir))
        except OSError as e:
            raise BundleAssemblyFailure(self.name, getattr(e, "filename", None) or current, e) from e

        logger.info("Assembled bundle %s", bundle)
        print(f"Created '{cfg.app_name}' in '{cfg.app_dir}'")
