from .stage_10_binary import BuildBinaryStage
from .stage_20_app import BundleAppStage
from .stage_30_dmg import PackageDmgStage
from .stage_40_install import InstallDmgStage

__all__ = [
    "BuildBinaryStage",
    "BundleAppStage",
    "PackageDmgStage",
    "InstallDmgStage",
]
