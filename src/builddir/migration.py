"""Upgrade legacy tracking records to the current directory layout."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .context import Endpoint, JobContext
from .fs import remove_if_exists
from .tracking.models import (
    ARTIFACTS_DIRECTORY,
    BINARIES_DIRECTORY,
    LEGACY_ARTIFACTS_DIRECTORY,
    LEGACY_STAGING_DIRECTORY,
    SOURCES_DIRECTORY,
    TEST_RESULTS_DIRECTORY,
    LegacyTrackingRecord,
    TrackingRecord,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SourcesNamingRules:
    """Which endpoint names may be kept as a legacy sources directory name."""

    reserved_names: tuple[str, ...] = (
        ARTIFACTS_DIRECTORY,
        LEGACY_ARTIFACTS_DIRECTORY,
        LEGACY_STAGING_DIRECTORY,
        TEST_RESULTS_DIRECTORY,
        BINARIES_DIRECTORY,
    )
    separators: tuple[str, ...] = ("\\", "/")

    def allows(self, name: str) -> bool:
        if not name or name in (os.curdir, os.pardir):
            return False
        # names that normalize differently are path expressions, not directory names
        if os.path.normpath(name) != name:
            return False
        lowered = name.lower()
        if any(lowered == reserved.lower() for reserved in self.reserved_names):
            return False
        return not any(separator in name for separator in self.separators)


def choose_sources_directory_name(
    build_directory: Path,
    endpoint: Endpoint,
    rules: SourcesNamingRules,
) -> str:
    """Keep an endpoint-named checkout when no ``s`` directory exists yet."""

    if (build_directory / SOURCES_DIRECTORY).is_dir():
        return SOURCES_DIRECTORY
    if rules.allows(endpoint.name) and (build_directory / endpoint.name).is_dir():
        return endpoint.name
    return SOURCES_DIRECTORY


def upgrade_legacy_record(
    job: JobContext,
    endpoint: Endpoint,
    record: TrackingRecord | LegacyTrackingRecord,
    *,
    work_directory: Path,
    rules: SourcesNamingRules | None = None,
) -> TrackingRecord:
    """Convert ``record`` to the current format, removing superseded directories.

    Current-format records are returned unchanged.
    """

    if isinstance(record, TrackingRecord):
        return record

    rules = rules or SourcesNamingRules()
    build_directory = Path(work_directory) / record.build_directory

    remove_if_exists(
        Path(work_directory) / record.artifacts_directory,
        job.cancellation,
        description="legacy artifacts directory",
    )
    remove_if_exists(
        Path(work_directory) / record.staging_directory,
        job.cancellation,
        description="legacy staging directory",
    )

    sources_name = choose_sources_directory_name(build_directory, endpoint, rules)
    job.debug(f"Legacy sources directory name resolved to '{sources_name}'")
    logger.info(
        "Upgrading legacy tracking record",
        extra={
            "collection_id": record.collection_id,
            "definition_id": record.definition_id,
            "sources_directory_name": sources_name,
        },
    )

    # The legacy artifacts directory is gone, so the new artifacts name is safe.
    return TrackingRecord.from_legacy(
        record,
        sources_directory_name=sources_name,
        use_new_artifacts_directory_name=True,
    )


__all__ = ["SourcesNamingRules", "choose_sources_directory_name", "upgrade_legacy_record"]
