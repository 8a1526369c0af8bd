import os
import stat
import time

import pytest

from apppack.lib.assets import copy_file, copy_tree, newest_mtime


def test_copy_tree_overwrites_and_keeps_modes(tmp_path):
    src = tmp_path / "src"
    (src / "a" / "b").mkdir(parents=True)
    (src / "a" / "b" / "run.sh").write_text("new")
    (src / "a" / "b" / "run.sh").chmod(0o755)
    (src / "top.txt").write_text("top")

    dst = tmp_path / "dst"
    (dst / "a" / "b").mkdir(parents=True)
    (dst / "a" / "b" / "run.sh").write_text("old")

    copy_tree(str(src), str(dst))

    assert (dst / "a" / "b" / "run.sh").read_text() == "new"
    assert stat.S_IMODE((dst / "a" / "b" / "run.sh").stat().st_mode) == 0o755
    assert (dst / "top.txt").read_text() == "top"


def test_copy_tree_recreates_symlinks(tmp_path):
    src = tmp_path / "src"
    (src / "Versions" / "A").mkdir(parents=True)
    (src / "Versions" / "A" / "lib").write_text("x")
    os.symlink("A", src / "Versions" / "Current")

    dst = tmp_path / "dst"
    copy_tree(str(src), str(dst))

    link = dst / "Versions" / "Current"
    assert link.is_symlink()
    assert os.readlink(link) == "A"
    assert (link / "lib").read_text() == "x"


def test_copy_tree_missing_source(tmp_path):
    with pytest.raises(FileNotFoundError):
        copy_tree(str(tmp_path / "missing"), str(tmp_path / "dst"))


def test_copy_file_overwrites(tmp_path):
    src = tmp_path / "tool"
    src.write_text("v2")
    (tmp_path / "out").mkdir()
    (tmp_path / "out" / "tool").write_text("v1")

    out = copy_file(str(src), str(tmp_path / "out"))

    assert out.read_text() == "v2"


def test_newest_mtime_walks_tree(tmp_path):
    (tmp_path / "d" / "e").mkdir(parents=True)
    f = tmp_path / "d" / "e" / "f"
    f.write_text("x")
    future = time.time() + 100
    os.utime(f, (future, future))

    assert newest_mtime(tmp_path / "d") == pytest.approx(future)
