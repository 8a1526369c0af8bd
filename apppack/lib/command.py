from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """Combined tool output, stdout first, as the tool wrote it."""
        return self.stdout + self.stderr


class CommandRunner(Protocol):
    def __call__(self, argv: Sequence[str], *, cwd: str | None = None) -> CmdResult:
        ...


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    cwd: str | None = None,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr so callers can surface them verbatim.
    - Blocks until the process exits; there is no timeout.
    """

    argv_list = [str(a) for a in argv]
    logger.info("CMD %s", fmt_argv(argv_list))

    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
    )

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise RuntimeError(f"Command failed ({p.returncode}): {fmt_argv(argv_list)}\n{p.stderr}")

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def default_runner(argv: Sequence[str], *, cwd: str | None = None) -> CmdResult:
    """CommandRunner used outside tests: run and report, never raise on exit status."""
    try:
        return run_cmd(argv, check=False, cwd=cwd)
    except FileNotFoundError as e:
        # Missing tool: report it the way a shell would.
        logger.error("Command not found: %s", argv[0])
        return CmdResult(argv=[str(a) for a in argv], returncode=127, stdout="", stderr=f"{e}\n")
