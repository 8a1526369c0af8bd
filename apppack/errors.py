from __future__ import annotations

from pathlib import Path
from typing import Optional


class ConfigError(ValueError):
    pass


class GraphError(RuntimeError):
    pass


class UnknownStage(KeyError):
    def __str__(self) -> str:
        return f"Unknown stage: {self.args[0]}"


class PipelineError(RuntimeError):
    """Base class for failures raised while running a stage."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage


class ExternalToolFailure(PipelineError):
    """An external command exited non-zero (or produced nothing usable)."""

    def __init__(self, stage: str, exit_code: int, tool_output: str = "", message: Optional[str] = None) -> None:
        super().__init__(stage, message or f"[{stage}] external tool failed with exit code {exit_code}")
        self.exit_code = exit_code
        self.tool_output = tool_output


class BuildFailure(ExternalToolFailure):
    pass


class PackagingFailure(ExternalToolFailure):
    pass


class InstallFailure(ExternalToolFailure):
    pass


class MissingPrerequisite(PipelineError):
    def __init__(self, stage: str, path: Path | str, what: str = "prerequisite") -> None:
        super().__init__(stage, f"[{stage}] missing {what}: {path}")
        self.path = Path(path)


class BundleAssemblyFailure(PipelineError):
    def __init__(self, stage: str, path: Path | str, cause: BaseException) -> None:
        super().__init__(stage, f"[{stage}] bundle assembly failed at {path}: {cause}")
        self.path = Path(path)
        self.cause = cause


class DependencyFailure(PipelineError):
    """A prerequisite of the requested stage failed."""

    def __init__(self, stage: str, failed_stage: str, cause: PipelineError) -> None:
        super().__init__(stage, f"[{stage}] prerequisite stage '{failed_stage}' failed: {cause}")
        self.failed_stage = failed_stage
        self.cause = cause
