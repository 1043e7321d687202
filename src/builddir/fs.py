"""Cancellable directory create/delete helpers."""

from __future__ import annotations

import logging
import os
import stat
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


class OperationCancelledError(RuntimeError):
    """Raised when a cancellation request interrupts a filesystem operation."""


def _check_cancelled(cancellation: threading.Event | None, path: Path) -> None:
    if cancellation is not None and cancellation.is_set():
        raise OperationCancelledError(f"Operation cancelled while deleting '{path}'")


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def _unlink(path: str) -> None:
    try:
        os.unlink(path)
    except PermissionError:
        if os.path.islink(path):
            raise
        # read-only entries block deletion on some platforms
        os.chmod(path, stat.S_IWRITE | stat.S_IREAD)
        os.unlink(path)


def delete_tree(path: Path, cancellation: threading.Event | None = None) -> None:
    """Recursively delete ``path``, checking ``cancellation`` before every entry.

    Symbolic links are removed without being followed. On cancellation the
    tree is left partially deleted and :class:`OperationCancelledError` is raised.
    """

    path = Path(path)
    _check_cancelled(cancellation, path)
    if path.is_symlink() or not path.is_dir():
        _unlink(str(path))
        return

    for dirpath, dirnames, filenames in os.walk(path, topdown=False, onerror=_raise_walk_error):
        for name in filenames:
            _check_cancelled(cancellation, path)
            _unlink(os.path.join(dirpath, name))
        for name in dirnames:
            _check_cancelled(cancellation, path)
            child = os.path.join(dirpath, name)
            if os.path.islink(child):
                _unlink(child)
            else:
                os.rmdir(child)

    _check_cancelled(cancellation, path)
    os.rmdir(path)


def remove_if_exists(
    path: Path,
    cancellation: threading.Event | None = None,
    *,
    description: str = "directory",
) -> bool:
    """Delete ``path`` if present. Returns whether anything was removed."""

    path = Path(path)
    logger.info("Checking if %s exists", description, extra={"path": str(path)})
    if not path.exists() and not path.is_symlink():
        return False

    logger.debug("Deleting %s", description, extra={"path": str(path)})
    delete_tree(path, cancellation)
    return True


def ensure_directory(
    path: Path,
    wipe_first: bool = False,
    cancellation: threading.Event | None = None,
    *,
    description: str = "directory",
) -> Path:
    """Create ``path`` and any missing parents, optionally wiping it first."""

    path = Path(path)
    if wipe_first:
        logger.debug("Delete existing %s", description, extra={"path": str(path)})
        remove_if_exists(path, cancellation, description=description)

    if not path.is_dir():
        logger.info("Creating %s", description, extra={"path": str(path)})
        path.mkdir(parents=True, exist_ok=True)
    return path


__all__ = ["OperationCancelledError", "delete_tree", "ensure_directory", "remove_if_exists"]
