from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .lib.env import DEFAULTS

logger = logging.getLogger(__name__)


# name -> (default, description); settable from the environment or as NAME=VALUE
PARAMETERS: Dict[str, Tuple[str, str]] = {
    "DEBUG": ("false", "Build binary in debug mode"),
    "FEATURES": (DEFAULTS.features, "Features to build into binary"),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}

_STR_KEYS = (
    "target_dir",
    "binary_name",
    "app_name",
    "dmg_name",
    "volume_name",
    "app_template",
    "dmg_filesystem",
    "dmg_format",
    "open_command",
    "state_file",
)


def parse_bool(value: Any, *, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean (true/false), got {value!r}")


@dataclass(frozen=True)
class BuildConfig:
    project_root: Path
    mode: str = "release"
    features: str = DEFAULTS.features
    target_dir: str = DEFAULTS.target_dir
    binary_name: str = DEFAULTS.binary_name
    app_name: str = DEFAULTS.app_name
    dmg_name: str = DEFAULTS.dmg_name
    volume_name: str = DEFAULTS.volume_name
    app_template: str = DEFAULTS.app_template
    build_command: Tuple[str, ...] = field(default=DEFAULTS.build_command)
    dmg_filesystem: str = DEFAULTS.dmg_filesystem
    dmg_format: str = DEFAULTS.dmg_format
    open_command: str = DEFAULTS.open_command
    state_file: str = DEFAULTS.state_file

    def __post_init__(self) -> None:
        if self.mode not in {"debug", "release"}:
            raise ConfigError(f"mode must be 'debug' or 'release', got {self.mode!r}")
        if not str(self.features).strip():
            raise ConfigError("FEATURES must be a non-empty feature token")
        if not self.build_command:
            raise ConfigError("build_command must not be empty")
        for key in ("binary_name", "app_name", "dmg_name", "volume_name"):
            if not getattr(self, key):
                raise ConfigError(f"{key} must not be empty")

        # clean() removes release_dir recursively, so it must stay below the project root.
        root = self.project_root.resolve()
        try:
            rel = self.release_dir.resolve().relative_to(root)
        except ValueError as e:
            raise ConfigError(f"Release directory escapes project root: {self.release_dir}") from e
        if rel == Path("."):
            raise ConfigError("Release directory must not be the project root")

    @property
    def debug(self) -> bool:
        return self.mode == "debug"

    @property
    def release_dir(self) -> Path:
        return self.project_root / self.target_dir / self.mode

    @property
    def executable_path(self) -> Path:
        return self.release_dir / self.binary_name

    @property
    def template_path(self) -> Path:
        return self.project_root / self.app_template

    @property
    def app_dir(self) -> Path:
        return self.release_dir / "osx"

    @property
    def bundle_path(self) -> Path:
        return self.app_dir / self.app_name

    @property
    def bundle_binary_dir(self) -> Path:
        return self.bundle_path / "Contents" / "MacOS"

    @property
    def bundled_executable(self) -> Path:
        return self.bundle_binary_dir / self.binary_name

    @property
    def dmg_path(self) -> Path:
        return self.app_dir / self.dmg_name

    @property
    def state_path(self) -> Path:
        p = Path(self.state_file)
        return p if p.is_absolute() else self.release_dir / p


def _read_yaml(path: Path) -> Dict[str, Any]:
    if path.suffix.lower() not in {".yaml", ".yml"}:
        raise ConfigError("build config must be YAML")
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping/object")
    return raw


def parse_assignments(items: Optional[list[str]]) -> Dict[str, str]:
    """Parse make-style NAME=VALUE command-line assignments."""

    out: Dict[str, str] = {}
    for item in items or []:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ConfigError(f"Expected NAME=VALUE, got {item!r}")
        if name not in PARAMETERS:
            raise ConfigError(f"Unknown parameter {name!r} (known: {', '.join(sorted(PARAMETERS))})")
        out[name] = value
    return out


def load_build_config(
    path: Optional[str] = None,
    *,
    project_root: Optional[str | Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, str]] = None,
) -> BuildConfig:
    """Build the immutable configuration for one invocation.

    Precedence, lowest first: built-in defaults, YAML file, environment,
    command-line assignments.
    """

    env = os.environ if environ is None else environ
    overrides = overrides or {}
    root = Path(project_root) if project_root is not None else Path.cwd()

    raw: Dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config file not found: {path}")
        raw = _read_yaml(p)
        # Relative to the config file unless the caller pinned a root.
        if project_root is None:
            root = (p.parent / str(raw.get("project_root") or ".")).resolve()
    else:
        p = root / DEFAULTS.config_file
        if p.exists():
            logger.info("Using config file %s", p)
            raw = _read_yaml(p)

    known = set(_STR_KEYS) | {"debug", "features", "build_command", "project_root"}
    for key in sorted(set(raw) - known):
        logger.warning("Ignoring unknown config key %r", key)

    kwargs: Dict[str, Any] = {k: str(raw[k]) for k in _STR_KEYS if raw.get(k) is not None}

    cmd = raw.get("build_command")
    if isinstance(cmd, str):
        kwargs["build_command"] = tuple(shlex.split(cmd))
    elif isinstance(cmd, list):
        kwargs["build_command"] = tuple(str(c) for c in cmd)
    elif cmd is not None:
        raise ConfigError("build_command must be a string or a list")

    debug: Any = raw.get("debug", PARAMETERS["DEBUG"][0])
    features: Any = raw.get("features", PARAMETERS["FEATURES"][0])
    if isinstance(features, list):
        features = ",".join(str(f) for f in features)
    if "DEBUG" in env:
        debug = env["DEBUG"]
    if "FEATURES" in env:
        features = env["FEATURES"]
    debug = overrides.get("DEBUG", debug)
    features = overrides.get("FEATURES", features)

    return BuildConfig(
        project_root=root,
        mode="debug" if parse_bool(debug, name="DEBUG") else "release",
        features=str(features).strip(),
        **kwargs,
    )
