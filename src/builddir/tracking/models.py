"""Tracking record models for build directory layouts."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import PurePath
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

SOURCES_DIRECTORY = "s"
BINARIES_DIRECTORY = "b"
ARTIFACTS_DIRECTORY = "a"
TEST_RESULTS_DIRECTORY = "TestResults"
LEGACY_ARTIFACTS_DIRECTORY = "artifacts"
LEGACY_STAGING_DIRECTORY = "staging"

TRACKING_ROOT = "SourceRootMapping"
TRACKING_FILE = "SourceFolder.json"
TOP_LEVEL_TRACKING_FILE = "Mappings.json"
GC_DIRECTORY = "GC"


def _join(base: str, name: str) -> str:
    return str(PurePath(base) / name)


def _normalize(path: str) -> PurePath:
    return PurePath(os.path.normpath(path))


def _is_strictly_under(child: str, parent: str) -> bool:
    child_path, parent_path = _normalize(child), _normalize(parent)
    return child_path != parent_path and parent_path in child_path.parents


class GarbageCollectionMarker(BaseModel):
    """Advisory flag telling an external sweep that a record may be removed."""

    marked: bool = True
    marked_on: datetime


class LegacyTrackingRecord(BaseModel):
    """Tracking record written by older agents.

    Artifacts and staging live in ``artifacts`` and ``staging`` under the build
    directory and the sources directory may be named after the endpoint.
    """

    format: Literal["legacy"] = "legacy"
    collection_id: str
    definition_id: str
    hash_key: str
    build_directory: str
    definition_name: str | None = None
    repository_url: str | None = None
    system: str | None = None
    last_run_on: datetime | None = None
    garbage_collection: GarbageCollectionMarker | None = None

    @field_validator("collection_id", "definition_id", "hash_key", "build_directory")
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Tracking record fields must not be empty")
        return normalized

    @property
    def artifacts_directory(self) -> str:
        return _join(self.build_directory, LEGACY_ARTIFACTS_DIRECTORY)

    @property
    def staging_directory(self) -> str:
        return _join(self.build_directory, LEGACY_STAGING_DIRECTORY)

    @property
    def marked_for_garbage_collection(self) -> bool:
        return self.garbage_collection is not None and self.garbage_collection.marked


class TrackingRecord(BaseModel):
    """Current-format mapping from a (collection, definition) to its directory layout."""

    format: Literal["current"] = "current"
    collection_id: str
    definition_id: str
    hash_key: str
    build_directory: str
    artifacts_directory: str
    test_results_directory: str
    sources_directory_name: str = SOURCES_DIRECTORY
    binaries_directory_name: str = BINARIES_DIRECTORY
    definition_name: str | None = None
    repository_url: str | None = None
    system: str | None = None
    last_run_on: datetime | None = None
    garbage_collection: GarbageCollectionMarker | None = None

    @field_validator(
        "collection_id",
        "definition_id",
        "hash_key",
        "build_directory",
        "sources_directory_name",
        "binaries_directory_name",
    )
    @classmethod
    def _require_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Tracking record fields must not be empty")
        return normalized

    @model_validator(mode="after")
    def _check_layout(self) -> "TrackingRecord":
        paths = {
            "artifacts_directory": self.artifacts_directory,
            "test_results_directory": self.test_results_directory,
            "sources_directory": self.sources_directory,
            "binaries_directory": self.binaries_directory,
        }
        for name, value in paths.items():
            if not _is_strictly_under(value, self.build_directory):
                raise ValueError(f"{name} must be nested under build_directory")
        if len({_normalize(value) for value in paths.values()}) != len(paths):
            raise ValueError("Tracking record directories must be distinct")
        return self

    @property
    def sources_directory(self) -> str:
        return _join(self.build_directory, self.sources_directory_name)

    @property
    def binaries_directory(self) -> str:
        return _join(self.build_directory, self.binaries_directory_name)

    @property
    def marked_for_garbage_collection(self) -> bool:
        return self.garbage_collection is not None and self.garbage_collection.marked

    def directories(self) -> list[str]:
        return [
            self.build_directory,
            self.artifacts_directory,
            self.test_results_directory,
            self.binaries_directory,
            self.sources_directory,
        ]

    @classmethod
    def for_build_directory(
        cls,
        *,
        collection_id: str,
        definition_id: str,
        hash_key: str,
        build_directory: str,
        **metadata: Any,
    ) -> "TrackingRecord":
        return cls(
            collection_id=collection_id,
            definition_id=definition_id,
            hash_key=hash_key,
            build_directory=build_directory,
            artifacts_directory=_join(build_directory, ARTIFACTS_DIRECTORY),
            test_results_directory=_join(build_directory, TEST_RESULTS_DIRECTORY),
            **metadata,
        )

    @classmethod
    def from_legacy(
        cls,
        legacy: LegacyTrackingRecord,
        *,
        sources_directory_name: str,
        use_new_artifacts_directory_name: bool,
    ) -> "TrackingRecord":
        artifacts_name = (
            ARTIFACTS_DIRECTORY if use_new_artifacts_directory_name else LEGACY_ARTIFACTS_DIRECTORY
        )
        return cls(
            collection_id=legacy.collection_id,
            definition_id=legacy.definition_id,
            hash_key=legacy.hash_key,
            build_directory=legacy.build_directory,
            artifacts_directory=_join(legacy.build_directory, artifacts_name),
            test_results_directory=_join(legacy.build_directory, TEST_RESULTS_DIRECTORY),
            sources_directory_name=sources_directory_name,
            definition_name=legacy.definition_name,
            repository_url=legacy.repository_url,
            system=legacy.system,
            last_run_on=legacy.last_run_on,
        )


class TopLevelTrackingConfig(BaseModel):
    """Agent-wide allocator for numbered build directories."""

    last_build_directory_number: int = Field(default=0, ge=0)


StoredRecord = Annotated[
    Union[TrackingRecord, LegacyTrackingRecord],
    Field(discriminator="format"),
]

_RECORD_ADAPTER: TypeAdapter[TrackingRecord | LegacyTrackingRecord] = TypeAdapter(StoredRecord)


def parse_record(document: Any) -> TrackingRecord | LegacyTrackingRecord:
    """Validate a stored document into a current or legacy record.

    Documents written before the ``format`` tag existed are classified by the
    presence of ``sources_directory_name``.
    """

    if isinstance(document, dict) and "format" not in document:
        document = {
            **document,
            "format": "current" if "sources_directory_name" in document else "legacy",
        }
    return _RECORD_ADAPTER.validate_python(document)


def serialize_record(record: TrackingRecord | LegacyTrackingRecord) -> str:
    return record.model_dump_json(indent=2) + "\n"


__all__ = [
    "ARTIFACTS_DIRECTORY",
    "BINARIES_DIRECTORY",
    "GC_DIRECTORY",
    "GarbageCollectionMarker",
    "LEGACY_ARTIFACTS_DIRECTORY",
    "LEGACY_STAGING_DIRECTORY",
    "LegacyTrackingRecord",
    "SOURCES_DIRECTORY",
    "StoredRecord",
    "TEST_RESULTS_DIRECTORY",
    "TOP_LEVEL_TRACKING_FILE",
    "TRACKING_FILE",
    "TRACKING_ROOT",
    "TopLevelTrackingConfig",
    "TrackingRecord",
    "parse_record",
    "serialize_record",
]
