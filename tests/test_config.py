from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from builddir.config import BuildDirSettings, get_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BUILDDIR_WORK_PATH",
        "BUILDDIR_TRACKING_BACKEND",
        "BUILDDIR_LOG_LEVEL",
        "BUILDDIR_RESERVED_SOURCE_NAMES",
        "BUILDDIR_SOURCE_NAME_SEPARATORS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = BuildDirSettings()

    assert settings.work_directory == Path("./_work")
    assert settings.tracking_backend == "file"
    assert settings.log_level == "INFO"
    rules = settings.naming_rules()
    assert rules.reserved_names == ("a", "artifacts", "staging", "TestResults", "b")
    assert rules.separators == ("\\", "/")


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BUILDDIR_WORK_PATH", str(tmp_path))
    monkeypatch.setenv("BUILDDIR_TRACKING_BACKEND", "Chroma")
    monkeypatch.setenv("BUILDDIR_LOG_LEVEL", "debug")
    monkeypatch.setenv("BUILDDIR_RESERVED_SOURCE_NAMES", "a, artifacts ,drop")

    settings = BuildDirSettings()

    assert settings.work_directory == tmp_path
    assert settings.tracking_backend == "chroma"
    assert settings.log_level == "DEBUG"
    assert settings.reserved_source_names == ("a", "artifacts", "drop")


def test_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILDDIR_LOG_LEVEL", "loud")

    with pytest.raises(ValidationError):
        BuildDirSettings()


def test_get_settings_resolves_paths(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BUILDDIR_WORK_PATH", str(tmp_path / "nested" / ".." / "work"))
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.work_directory == (tmp_path / "work").resolve()
        assert settings.work_directory.is_absolute()
    finally:
        get_settings.cache_clear()
