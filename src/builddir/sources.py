"""Source-identity providers that fingerprint a job's source configuration."""

from __future__ import annotations

import hashlib
from typing import Protocol

from .context import Endpoint, JobContext


class SourceProvider(Protocol):
    """Computes the hash key that decides whether a build directory can be reused."""

    def compute_hash_key(self, job: JobContext, endpoint: Endpoint) -> str:
        ...


class RepositoryHashKeyProvider:
    """Fingerprint the collection, definition and repository URL."""

    def compute_hash_key(self, job: JobContext, endpoint: Endpoint) -> str:
        hash_input = f"{job.collection_id}_{job.definition_id}_{endpoint.url}"
        return hashlib.sha1(hash_input.encode("utf-8")).hexdigest()


__all__ = ["RepositoryHashKeyProvider", "SourceProvider"]
