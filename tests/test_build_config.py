from pathlib import Path

import pytest

from apppack.build_config import BuildConfig, load_build_config, parse_assignments, parse_bool
from apppack.errors import ConfigError


def test_defaults(project):
    cfg = load_build_config(project_root=project, environ={})

    assert cfg.mode == "release"
    assert cfg.features == "default"
    assert cfg.release_dir == project / "target" / "release"
    assert cfg.executable_path == project / "target" / "release" / "alacritty"
    assert cfg.bundle_path == project / "target" / "release" / "osx" / "Alacritty.app"
    assert cfg.bundled_executable == cfg.bundle_path / "Contents" / "MacOS" / "alacritty"
    assert cfg.dmg_path == project / "target" / "release" / "osx" / "Alacritty.dmg"
    assert cfg.state_path.parent == cfg.release_dir


def test_debug_from_environment(project):
    cfg = load_build_config(project_root=project, environ={"DEBUG": "true", "FEATURES": "x11"})

    assert cfg.debug
    assert cfg.release_dir == project / "target" / "debug"
    assert cfg.features == "x11"


def test_assignments_override_environment(project):
    cfg = load_build_config(
        project_root=project,
        environ={"DEBUG": "true", "FEATURES": "x11"},
        overrides={"DEBUG": "false", "FEATURES": "wayland"},
    )

    assert cfg.mode == "release"
    assert cfg.features == "wayland"


def test_yaml_config(project):
    conf = project / "apppack.yaml"
    conf.write_text(
        "debug: true\n"
        "features: [x11, wayland]\n"
        "binary_name: myterm\n"
        "app_name: MyTerm.app\n"
        "build_command: cargo +nightly build\n"
    )

    cfg = load_build_config(str(conf), environ={})

    assert cfg.project_root == project.resolve()
    assert cfg.mode == "debug"
    assert cfg.features == "x11,wayland"
    assert cfg.build_command == ("cargo", "+nightly", "build")
    assert cfg.bundled_executable.name == "myterm"
    assert cfg.bundle_path.name == "MyTerm.app"


def test_yaml_in_project_root_is_picked_up(project):
    (project / "apppack.yaml").write_text("volume_name: Term\n")

    cfg = load_build_config(project_root=project, environ={})

    assert cfg.volume_name == "Term"


def test_environment_beats_yaml(project):
    conf = project / "apppack.yaml"
    conf.write_text("debug: true\n")

    cfg = load_build_config(str(conf), environ={"DEBUG": "0"})

    assert cfg.mode == "release"


def test_missing_explicit_config(project):
    with pytest.raises(ConfigError, match="not found"):
        load_build_config(str(project / "nope.yaml"), environ={})


def test_non_yaml_config(project):
    conf = project / "apppack.json"
    conf.write_text("{}")
    with pytest.raises(ConfigError, match="YAML"):
        load_build_config(str(conf), environ={})


def test_config_must_be_mapping(project):
    conf = project / "apppack.yaml"
    conf.write_text("- a\n- b\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_build_config(str(conf), environ={})


@pytest.mark.parametrize("value,expected", [("true", True), ("YES", True), ("1", True), ("off", False), ("", False)])
def test_parse_bool(value, expected):
    assert parse_bool(value, name="DEBUG") is expected


def test_invalid_debug_value(project):
    with pytest.raises(ConfigError, match="DEBUG"):
        load_build_config(project_root=project, environ={"DEBUG": "maybe"})


def test_empty_features_rejected(project):
    with pytest.raises(ConfigError, match="FEATURES"):
        load_build_config(project_root=project, environ={"FEATURES": "  "})


def test_release_dir_must_stay_inside_project(tmp_path):
    with pytest.raises(ConfigError, match="escapes"):
        BuildConfig(project_root=tmp_path / "proj", target_dir="../elsewhere/..")


def test_invalid_mode(tmp_path):
    with pytest.raises(ConfigError):
        BuildConfig(project_root=tmp_path, mode="profile")


def test_parse_assignments():
    assert parse_assignments(["DEBUG=true", "FEATURES=a,b"]) == {"DEBUG": "true", "FEATURES": "a,b"}

    with pytest.raises(ConfigError, match="Unknown parameter"):
        parse_assignments(["TARGET=x"])
    with pytest.raises(ConfigError, match="NAME=VALUE"):
        parse_assignments(["DEBUG"])


def test_absolute_state_file(tmp_path):
    state = tmp_path / "state" / "pipeline.yaml"
    cfg = BuildConfig(project_root=tmp_path, state_file=str(state))
    assert cfg.state_path == Path(state)
