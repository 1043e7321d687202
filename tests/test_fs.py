from __future__ import annotations

import os
import stat
import threading
from pathlib import Path

import pytest

from builddir import fs
from builddir.fs import OperationCancelledError, delete_tree, ensure_directory, remove_if_exists


class CountdownEvent(threading.Event):
    """Reports cancellation once ``is_set`` has been polled ``allowed`` times."""

    def __init__(self, allowed: int) -> None:
        super().__init__()
        self.allowed = allowed
        self.polls = 0

    def is_set(self) -> bool:  # type: ignore[override]
        self.polls += 1
        return self.polls > self.allowed


def populate(root: Path, count: int = 5) -> None:
    for idx in range(count):
        nested = root / f"dir{idx}"
        nested.mkdir(parents=True)
        (nested / "file.txt").write_text(str(idx), encoding="utf-8")


def test_wipe_on_missing_path_leaves_empty_directory(tmp_path: Path) -> None:
    target = tmp_path / "missing" / "nested"

    ensure_directory(target, wipe_first=True)

    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_existing_directory_is_left_untouched_without_wipe(tmp_path: Path) -> None:
    target = tmp_path / "keep"
    populate(target, count=2)

    ensure_directory(target, wipe_first=False)

    assert sorted(path.name for path in target.iterdir()) == ["dir0", "dir1"]
    assert (target / "dir1" / "file.txt").read_text(encoding="utf-8") == "1"


def test_wipe_recreates_empty_directory(tmp_path: Path) -> None:
    target = tmp_path / "wipe"
    populate(target)

    ensure_directory(target, wipe_first=True)

    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_cancellation_before_delete_keeps_tree(tmp_path: Path) -> None:
    target = tmp_path / "tree"
    populate(target)
    cancellation = threading.Event()
    cancellation.set()

    with pytest.raises(OperationCancelledError):
        ensure_directory(target, wipe_first=True, cancellation=cancellation)

    assert (target / "dir0" / "file.txt").exists()


def test_cancellation_mid_delete_stops_promptly(tmp_path: Path) -> None:
    target = tmp_path / "tree"
    populate(target, count=10)
    cancellation = CountdownEvent(allowed=3)

    with pytest.raises(OperationCancelledError):
        delete_tree(target, cancellation)

    assert target.exists()
    remaining = [path for path in target.rglob("file.txt")]
    assert 0 < len(remaining) < 10


def test_remove_if_exists_is_noop_for_missing_path(tmp_path: Path) -> None:
    assert remove_if_exists(tmp_path / "nothing") is False


def test_remove_if_exists_deletes_plain_file(tmp_path: Path) -> None:
    target = tmp_path / "file.txt"
    target.write_text("x", encoding="utf-8")

    assert remove_if_exists(target) is True
    assert not target.exists()


def test_remove_does_not_follow_symlinks(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "precious.txt").write_text("keep", encoding="utf-8")
    tree = tmp_path / "tree"
    tree.mkdir()
    os.symlink(outside, tree / "link", target_is_directory=True)

    remove_if_exists(tree)

    assert not tree.exists()
    assert (outside / "precious.txt").read_text(encoding="utf-8") == "keep"


def test_remove_handles_read_only_files(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    tree.mkdir()
    locked = tree / "locked.txt"
    locked.write_text("ro", encoding="utf-8")
    locked.chmod(stat.S_IREAD)

    remove_if_exists(tree)

    assert not tree.exists()


def test_delete_failures_are_surfaced(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    tree = tmp_path / "tree"
    populate(tree, count=1)

    def refuse(path: str) -> None:
        raise PermissionError(13, "locked", path)

    monkeypatch.setattr(fs, "_unlink", refuse)

    with pytest.raises(PermissionError):
        remove_if_exists(tree)
    assert tree.exists()


def test_ensure_directory_fails_when_a_file_is_in_the_way(tmp_path: Path) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("file", encoding="utf-8")

    with pytest.raises(OSError):
        ensure_directory(blocker, wipe_first=False)
