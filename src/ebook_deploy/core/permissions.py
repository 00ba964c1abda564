"""Group ownership and permission fixes for published files."""

import os
import shutil
import stat
from pathlib import Path


def set_group_writable(path: Path, group: str, setgid: bool = False) -> None:
    """chgrp ``path`` to ``group`` and add g+w (and g+s when asked)."""
    shutil.chown(path, group=group)
    mode = path.stat().st_mode | stat.S_IWGRP
    if setgid:
        mode |= stat.S_ISGID
    os.chmod(path, stat.S_IMODE(mode))


def fix_tree(root: Path, group: str) -> None:
    """Recursively give ``group`` write access to ``root``.

    Directories also get setgid so files created later inherit the group.
    """
    if not root.exists():
        return
    set_group_writable(root, group, setgid=root.is_dir())
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            set_group_writable(Path(dirpath) / name, group, setgid=True)
        for name in filenames:
            path = Path(dirpath) / name
            if not path.is_symlink():
                set_group_writable(path, group)
