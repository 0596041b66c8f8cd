"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Callable, Union

from issuefix.utils.logger import log_debug


def _make_writable(path: str) -> None:
    try:
        mode = os.lstat(path).st_mode
    except FileNotFoundError:
        return
    extra = stat.S_IWRITE | stat.S_IREAD
    if stat.S_ISDIR(mode):
        extra |= stat.S_IEXEC
    os.chmod(path, mode | extra)


def _rmtree(path: Union[str, Path], handler: Callable) -> None:
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=handler)
    else:
        shutil.rmtree(path, onerror=lambda func, p, info: handler(func, p, info[1]))


def _strict(func, path, exc) -> None:
    if isinstance(exc, FileNotFoundError):
        return
    raise exc


def _retry_writable(func, path, exc) -> None:
    """Reset permissions on the failing entry and its parent, then retry once.

    A second failure propagates to the caller.
    """
    if isinstance(exc, FileNotFoundError):
        return
    if not isinstance(exc, PermissionError):
        raise exc
    _make_writable(os.path.dirname(path) or ".")
    _make_writable(path)
    if os.path.isdir(path) and not os.path.islink(path):
        _rmtree(path, _strict)
    else:
        func(path)


def _clear_readonly(root: Path) -> None:
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            _make_writable(os.path.join(dirpath, name))


def remove_tree(path: Union[str, Path], windows: bool = False) -> bool:
    """Recursively delete ``path``.

    Returns ``False`` when there was nothing to delete. Permission-denied
    entries get their permissions reset before the deletion is retried; an
    entry that still cannot be removed raises ``OSError``. ``windows`` clears
    read-only bits up front, since those block deletion there.
    """
    target = Path(path)
    if not target.exists() and not target.is_symlink():
        return False

    if target.is_symlink() or target.is_file():
        try:
            target.unlink()
        except PermissionError:
            _make_writable(str(target.parent))
            _make_writable(str(target))
            target.unlink()
        return True

    if windows:
        _clear_readonly(target)

    _rmtree(target, _retry_writable)
    log_debug("Removed directory tree", path=str(target))
    return True
