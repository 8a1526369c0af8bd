from pathlib import Path

import pytest

from apppack.build_config import BuildConfig
from apppack.lib.command import CmdResult
from apppack.main import build_stages
from apppack.pipeline import Orchestrator, StageCtx


class FakeRunner:
    """Stands in for cargo, hdiutil and open without spawning processes."""

    def __init__(self, binary_name="alacritty"):
        self.binary_name = binary_name
        self.calls = []
        self.exit_codes = {}
        self.raises = {}
        self.partial_on_failure = False

    @property
    def tools(self):
        return [c[0] for c in self.calls]

    def __call__(self, argv, *, cwd=None):
        argv = [str(a) for a in argv]
        self.calls.append(argv)
        tool = argv[0]
        if tool in self.raises:
            raise self.raises[tool]

        code = self.exit_codes.get(tool, 0)
        if code == 0 or self.partial_on_failure:
            self._write_output(argv, cwd, partial=code != 0)

        stderr = "" if code == 0 else f"{tool}: error: something broke\n"
        return CmdResult(argv=argv, returncode=code, stdout=f"{tool} ran\n", stderr=stderr)

    def _write_output(self, argv, cwd, *, partial):
        tool = argv[0]
        if tool == "cargo":
            mode = "release" if "--release" in argv else "debug"
            exe = Path(cwd) / "target" / mode / self.binary_name
            exe.parent.mkdir(parents=True, exist_ok=True)
            exe.write_text("partial" if partial else "#!/bin/sh\necho placeholder\n")
            exe.chmod(0o755)
        elif tool == "hdiutil":
            dmg = Path(argv[2])
            dmg.parent.mkdir(parents=True, exist_ok=True)
            dmg.write_bytes(b"partial" if partial else b"DMG " + argv[argv.index("-srcfolder") + 1].encode())


@pytest.fixture
def project(tmp_path):
    """A project root holding a well-formed bundle template."""
    template = tmp_path / "assets" / "osx" / "Alacritty.app" / "Contents"
    (template / "Resources").mkdir(parents=True)
    (template / "Info.plist").write_text("<plist><dict/></plist>\n")
    (template / "Resources" / "alacritty.icns").write_bytes(b"icns")
    return tmp_path


@pytest.fixture
def cfg(project):
    return BuildConfig(project_root=project)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def orch(cfg, runner):
    return Orchestrator(StageCtx(cfg=cfg, runner=runner), build_stages())


@pytest.fixture(autouse=True)
def no_global_logging(monkeypatch):
    # Root handlers would outlive each test's captured streams.
    monkeypatch.setattr("apppack.main.configure_logging", lambda **kwargs: kwargs.get("log_path"))
