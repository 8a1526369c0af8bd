from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

STATE_VERSION = 1

BUILDING = "building"
PRESENT = "present"
FAILED = "failed"


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str | Path) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    text = p.read_text(encoding="utf-8")
    try:
        if _detect_format(p) == "json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (ValueError, yaml.YAMLError):
        # An unreadable marker file only means nothing is known to be built.
        logger.warning("Discarding unreadable state file %s", p)
        return {}

    if not isinstance(data, dict):
        logger.warning("Discarding state file %s: expected an object, got %s", p, type(data).__name__)
        return {}

    return data


def save_state(path: str | Path, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    if _detect_format(p) == "json":
        text = json.dumps(state, indent=2, sort_keys=True) + "\n"
    else:
        text = yaml.safe_dump(state, sort_keys=False) + "\n"

    # Write-then-rename so an interrupted save never leaves a truncated file.
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(p)


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    state.setdefault("version", STATE_VERSION)
    state.setdefault("stages", {})
    return state


def stage_record(state: Dict[str, Any], stage: str) -> Dict[str, Any]:
    return (state.get("stages") or {}).get(stage) or {}


def mark_stage_building(state: Dict[str, Any], stage: str) -> None:
    rec = state.setdefault("stages", {}).setdefault(stage, {})
    rec["status"] = BUILDING
    rec["started_at"] = time.time()


def mark_stage_present(
    state: Dict[str, Any],
    stage: str,
    *,
    output: Optional[Path],
    fingerprint: Dict[str, Any],
) -> None:
    rec = state.setdefault("stages", {}).setdefault(stage, {})
    rec["status"] = PRESENT
    rec["completed_at"] = time.time()
    rec["output"] = str(output) if output is not None else None
    rec["fingerprint"] = dict(fingerprint)
    rec.pop("error", None)


def mark_stage_failed(state: Dict[str, Any], stage: str, error: str) -> None:
    rec = state.setdefault("stages", {}).setdefault(stage, {})
    rec["status"] = FAILED
    rec["completed_at"] = None
    rec["error"] = error


def is_stage_present(state: Dict[str, Any], stage: str) -> bool:
    return stage_record(state, stage).get("status") == PRESENT
