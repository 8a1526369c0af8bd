from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def copy_tree(src: str, dst: str) -> None:
    """Copy the contents of ``src`` into ``dst``, overwriting existing files.

    File modes are preserved (``shutil.copy2`` for files); symlinks are
    recreated rather than followed.
    """

    s = Path(src)
    d = Path(dst)
    if not s.exists():
        raise FileNotFoundError(src)

    d.mkdir(parents=True, exist_ok=True)
    copied_dirs = [(s, d)]
    # os.walk does not descend into symlinked directories
    for root, dirs, files in os.walk(s):
        base = Path(root)
        out_base = d / base.relative_to(s)
        for name in sorted(dirs + files):
            item = base / name
            out = out_base / name
            if item.is_symlink():
                if out.is_symlink() or out.is_file():
                    out.unlink()
                os.symlink(os.readlink(item), out)
            elif item.is_dir():
                out.mkdir(exist_ok=True)
                copied_dirs.append((item, out))
            else:
                if out.is_symlink():
                    out.unlink()
                shutil.copy2(item, out)
    # Directory modes last, deepest first, so read-only template dirs can still be filled.
    for src_dir, dst_dir in reversed(copied_dirs):
        shutil.copymode(src_dir, dst_dir)
    logger.debug("Copied tree %s -> %s", str(s), str(d))


def copy_file(src: str, dst_dir: str) -> Path:
    """Copy a single file into ``dst_dir`` preserving mode, overwriting."""
    s = Path(src)
    out = Path(dst_dir) / s.name
    if out.is_symlink():
        out.unlink()
    shutil.copy2(s, out)
    return out


def newest_mtime(path: Path) -> float:
    """Newest modification time of ``path`` and, for directories, everything below it."""
    st = path.lstat()
    newest = st.st_mtime
    if path.is_dir() and not path.is_symlink():
        for root, dirs, files in os.walk(path):
            for name in dirs + files:
                newest = max(newest, os.lstat(os.path.join(root, name)).st_mtime)
    return newest
