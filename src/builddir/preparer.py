"""Build directory preparation.

Decides whether a previous run's build directory can be reused, upgrades
legacy tracking records, applies the clean policy and creates the standard
directory set:

    <work>/<build>/             build root, wiped for clean=All
    <work>/<build>/a            artifacts, always recreated
    <work>/<build>/TestResults  test results, always recreated
    <work>/<build>/b            binaries, wiped for clean=Binary
    <work>/<build>/s            sources, wiped for clean=Source

A superseded record is only marked for garbage collection after its
replacement has been stored, so a definition that has run before always has
at least one valid record.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .clean import CleanOption, resolve_clean_option
from .context import Endpoint, JobContext
from .fs import ensure_directory
from .migration import SourcesNamingRules, upgrade_legacy_record
from .sources import SourceProvider
from .tracking.models import LegacyTrackingRecord, TrackingRecord
from .tracking.store import TrackingStore

logger = logging.getLogger(__name__)


class DirectoryPreparer:
    """Prepare the build directory tree for a job using an injected tracking store."""

    def __init__(
        self,
        store: TrackingStore,
        work_directory: Path,
        *,
        naming_rules: SourcesNamingRules | None = None,
    ) -> None:
        self._store = store
        self._work_directory = Path(work_directory)
        self._naming_rules = naming_rules or SourcesNamingRules()

    @property
    def work_directory(self) -> Path:
        return self._work_directory

    def resolve(self, relative: str) -> Path:
        """Anchor a stored path at the work directory. Absolute paths are kept as-is."""

        return self._work_directory / relative

    def prepare(
        self,
        job: JobContext,
        endpoint: Endpoint,
        source_provider: SourceProvider,
    ) -> TrackingRecord:
        job.debug("Calculating build directory hash key.")
        hash_key = source_provider.compute_hash_key(job, endpoint)
        job.debug(f"Hash key: {hash_key}")

        collection_id, definition_id = job.collection_id, job.definition_id
        existing = self._store.load_if_exists(collection_id, definition_id)

        garbage: TrackingRecord | LegacyTrackingRecord | None = None
        if existing is not None and existing.hash_key.lower() != hash_key.lower():
            job.debug(
                f"Hash key from existing tracking record does not match. Existing key: {existing.hash_key}"
            )
            garbage, existing = existing, None

        if existing is None:
            job.debug("Creating a new tracking record.")
            record = self._store.create_new(job, endpoint, hash_key)
        else:
            record = upgrade_legacy_record(
                job,
                endpoint,
                existing,
                work_directory=self._work_directory,
                rules=self._naming_rules,
            )
            job.debug("Updating job run properties.")
            record = self._store.refresh_job_run_metadata(job, record)

        if garbage is not None:
            job.debug("Marking existing tracking record for garbage collection.")
            self._store.mark_for_garbage_collection(garbage)

        clean_option = resolve_clean_option(job, endpoint)
        logger.info(
            "Preparing build directory",
            extra={
                "collection_id": collection_id,
                "definition_id": definition_id,
                "build_directory": record.build_directory,
                "clean": clean_option.value,
            },
        )
        self._create_directories(job, record, clean_option)
        return record

    def _create_directories(
        self,
        job: JobContext,
        record: TrackingRecord,
        clean_option: CleanOption,
    ) -> None:
        layout = [
            ("build directory", record.build_directory, clean_option is CleanOption.ALL),
            ("artifacts directory", record.artifacts_directory, True),
            ("test results directory", record.test_results_directory, True),
            ("binaries directory", record.binaries_directory, clean_option is CleanOption.BINARY),
            ("source directory", record.sources_directory, clean_option is CleanOption.SOURCE),
        ]
        for description, relative, wipe_first in layout:
            path = self.resolve(relative)
            if wipe_first:
                job.debug(f"Delete existing {description}: '{path}'")
            if wipe_first or not path.is_dir():
                job.debug(f"Creating {description}: '{path}'")
            ensure_directory(path, wipe_first, job.cancellation, description=description)


__all__ = ["DirectoryPreparer"]
