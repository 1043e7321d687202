"""Build directory preparation and tracking for CI jobs."""

__version__ = "0.1.0"

from .clean import CleanOption, resolve_clean_option
from .context import Endpoint, JobContext
from .fs import OperationCancelledError, ensure_directory, remove_if_exists
from .migration import SourcesNamingRules, upgrade_legacy_record
from .preparer import DirectoryPreparer
from .sources import RepositoryHashKeyProvider, SourceProvider

__all__ = [
    "__version__",
    "CleanOption",
    "DirectoryPreparer",
    "Endpoint",
    "JobContext",
    "OperationCancelledError",
    "RepositoryHashKeyProvider",
    "SourceProvider",
    "SourcesNamingRules",
    "ensure_directory",
    "remove_if_exists",
    "resolve_clean_option",
    "upgrade_legacy_record",
]
