"""Configuration management for builddir."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .migration import SourcesNamingRules


DEFAULT_RESERVED_SOURCE_NAMES = SourcesNamingRules().reserved_names
DEFAULT_SOURCE_NAME_SEPARATORS = SourcesNamingRules().separators


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class BuildDirSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    work_directory: Path = Field(default=Path("./_work"), validation_alias="BUILDDIR_WORK_PATH")
    tracking_backend: Literal["file", "chroma"] = Field(
        default="file", validation_alias="BUILDDIR_TRACKING_BACKEND"
    )
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    log_level: str = Field(default="INFO", validation_alias="BUILDDIR_LOG_LEVEL")
    reserved_source_names: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_RESERVED_SOURCE_NAMES,
        validation_alias="BUILDDIR_RESERVED_SOURCE_NAMES",
    )
    source_name_separators: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_SOURCE_NAME_SEPARATORS,
        validation_alias="BUILDDIR_SOURCE_NAME_SEPARATORS",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "BUILDDIR_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("tracking_backend", mode="before")
    @classmethod
    def _normalize_backend(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("reserved_source_names", mode="before")
    @classmethod
    def _parse_reserved_names(cls, value):
        if value is None or value == "":
            return DEFAULT_RESERVED_SOURCE_NAMES
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            return _split_csv(value) or DEFAULT_RESERVED_SOURCE_NAMES
        raise TypeError("BUILDDIR_RESERVED_SOURCE_NAMES must be a list or a comma-separated string")

    @field_validator("source_name_separators", mode="before")
    @classmethod
    def _parse_separators(cls, value):
        if value is None or value == "":
            return DEFAULT_SOURCE_NAME_SEPARATORS
        if isinstance(value, (list, tuple)):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            return _split_csv(value) or DEFAULT_SOURCE_NAME_SEPARATORS
        raise TypeError("BUILDDIR_SOURCE_NAME_SEPARATORS must be a list or a comma-separated string")

    def naming_rules(self) -> SourcesNamingRules:
        return SourcesNamingRules(
            reserved_names=self.reserved_source_names,
            separators=self.source_name_separators,
        )


@lru_cache(maxsize=1)
def get_settings() -> BuildDirSettings:
    """Return cached settings instance."""

    settings = BuildDirSettings()
    settings.work_directory = settings.work_directory.expanduser().resolve()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    return settings


__all__ = ["BuildDirSettings", "get_settings"]
