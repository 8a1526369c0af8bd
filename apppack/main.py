from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from .build_config import BuildConfig, load_build_config, parse_assignments
from .errors import ConfigError, DependencyFailure, ExternalToolFailure, PipelineError
from .lib.command import CommandRunner, default_runner
from .lib.env import DEFAULTS
from .logging_utils import configure_logging
from .pipeline import Orchestrator, StageCtx
from .stages import BuildBinaryStage, BundleAppStage, InstallDmgStage, PackageDmgStage

logger = logging.getLogger(__name__)

BUILTIN_COMMANDS = {
    "help": "Prints help for targets with comments",
    "clean": "Remove all artifacts",
}

# Commands that never fail on configuration values.
LENIENT_COMMANDS = ("help", "clean")

EPILOG = (
    "Artifacts live under target/<debug|release>. Do not run two pipelines "
    "against the same release directory at once."
)


def build_stages():
    return [
        BuildBinaryStage(),
        BundleAppStage(),
        PackageDmgStage(),
        InstallDmgStage(),
    ]


def format_help(orch: Orchestrator) -> str:
    info = orch.describe()
    targets = dict(BUILTIN_COMMANDS)
    targets.update(dict(info["stages"]))

    lines = []
    for name in sorted(targets):
        lines.append(f"{name:<30} {targets[name]}")
    for name, default, desc in sorted(info["parameters"]):
        lines.append(f"{name + ' = ' + default:<30} {desc}")
    return "\n".join(lines) + "\n"


def _lenient_config(
    config_path: Optional[str],
    environ: Optional[Mapping[str, str]],
    assignments: List[str],
    error: ConfigError,
) -> BuildConfig:
    """Config for help/clean: only DEBUG matters, and nothing may fail."""
    env = os.environ if environ is None else environ
    logger.warning("Ignoring invalid configuration for this command: %s", error)
    try:
        overrides = {k: v for k, v in parse_assignments(assignments).items() if k == "DEBUG"}
        debug_env = {"DEBUG": env["DEBUG"]} if "DEBUG" in env else {}
        return load_build_config(config_path, environ=debug_env, overrides=overrides)
    except ConfigError:
        return BuildConfig(project_root=Path.cwd())


def _report_failure(e: PipelineError) -> None:
    root = e.cause if isinstance(e, DependencyFailure) else e
    if isinstance(root, ExternalToolFailure) and root.tool_output:
        sys.stderr.write(root.tool_output)
        if not root.tool_output.endswith("\n"):
            sys.stderr.write("\n")
    print(f"apppack: *** {e}", file=sys.stderr)


def run(
    command: str,
    *,
    cfg: BuildConfig,
    force: bool = False,
    dry_run: bool = False,
    runner: CommandRunner = default_runner,
) -> int:
    orch = Orchestrator(StageCtx(cfg=cfg, runner=runner), build_stages())

    if command == "help":
        sys.stdout.write(format_help(orch))
        return 0

    if command == "clean":
        orch.clean()
        return 0

    logger.info("=== %s (%s, features=%s) ===", command, cfg.mode, cfg.features)
    if dry_run:
        for name, will_run in orch.plan(command, force=force):
            print(f"{name:<10} {'run' if will_run else 'up to date'}")
        return 0

    result = orch.run(command, force=force)
    logger.info("Ran stages: %s; skipped: %s", result.ran_stages or "-", result.skipped_stages or "-")
    return 0


def main(
    argv: Optional[List[str]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    runner: CommandRunner = default_runner,
) -> int:
    commands = sorted(set(BUILTIN_COMMANDS) | {s.name for s in build_stages()})

    p = argparse.ArgumentParser(prog="apppack", epilog=EPILOG)
    p.add_argument("command", nargs="?", default="help", help=f"One of: {', '.join(commands)}")
    p.add_argument("assignments", nargs="*", metavar="NAME=VALUE", help="Override DEBUG or FEATURES")
    p.add_argument("--config", default=None, help="YAML config (default: ./apppack.yaml if present)")
    p.add_argument("--log", default=None, help=f"Path to pipeline log (default: <project>/{DEFAULTS.log_file})")
    p.add_argument("--force", action="store_true", help="Re-run stages even if their output is current")
    p.add_argument("--dry-run", action="store_true", help="Show which stages would run")
    p.add_argument("--verbose", "-v", action="store_true")

    args = p.parse_intermixed_args(argv)

    command = args.command
    assignments = list(args.assignments)
    # `apppack DEBUG=true` behaves like `make DEBUG=true`: default command.
    if "=" in command:
        assignments.insert(0, command)
        command = "help"
    if command not in commands:
        p.error(f"unknown command {command!r} (choose from {', '.join(commands)})")

    try:
        cfg = load_build_config(args.config, environ=environ, overrides=parse_assignments(assignments))
    except ConfigError as e:
        if command not in LENIENT_COMMANDS:
            print(f"apppack: {e}", file=sys.stderr)
            return 2
        cfg = _lenient_config(args.config, environ, assignments, e)

    if command != "help":
        log_path = args.log or str(cfg.project_root / DEFAULTS.log_file)
        configure_logging(log_path=log_path, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        return run(command, cfg=cfg, force=args.force, dry_run=args.dry_run, runner=runner)
    except PipelineError as e:
        logger.error("Pipeline failed in stage %s: %s", e.stage, e)
        _report_failure(e)
        return 1
    except KeyboardInterrupt:
        print("apppack: *** interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
