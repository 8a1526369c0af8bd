from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Defaults:
    config_file: str = "apppack.yaml"
    log_file: str = "target/apppack.log"
    state_file: str = ".apppack-state.json"
    target_dir: str = "target"
    binary_name: str = "alacritty"
    app_name: str = "Alacritty.app"
    dmg_name: str = "Alacritty.dmg"
    volume_name: str = "Alacritty"
    app_template: str = "assets/osx/Alacritty.app"
    build_command: tuple = ("cargo", "build")
    dmg_filesystem: str = "HFS+"
    dmg_format: str = "UDZO"
    open_command: str = "open"
    features: str = "default"


DEFAULTS = Defaults()
