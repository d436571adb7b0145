"""Content-addressed cache of derived per-file analysis results."""

from .context import FileInfoContext, RepositoryContext, WorktreeContext
from .errors import CircularDependencyError, FileInfoError, InvalidContextUsage, RegistryFrozenError
from .factory import ContextFactory
from .fingerprint import compute_fingerprint
from .registry import FileInfoProvider, FunctionProvider, ProviderRegistry
from .schema import CacheEntry, CacheMetadata, Fingerprint, InfoResult, InfoSource, MissReason
from .store import CacheStore

__all__ = [
    "CacheEntry",
    "CacheMetadata",
    "CacheStore",
    "CircularDependencyError",
    "ContextFactory",
    "FileInfoContext",
    "FileInfoError",
    "FileInfoProvider",
    "Fingerprint",
    "FunctionProvider",
    "InfoResult",
    "InfoSource",
    "InvalidContextUsage",
    "MissReason",
    "ProviderRegistry",
    "RegistryFrozenError",
    "RepositoryContext",
    "WorktreeContext",
    "compute_fingerprint",
]
