"""Repository and worktree contexts that resolve cached derived info for files.

A ``RepositoryContext`` owns the canonical copy of every file. A
``WorktreeContext`` points at an isolated checkout of the same repository and
reuses the repository's results whenever its copy of a file is byte-identical.
Both share one ``CacheStore`` and ``ProviderRegistry`` per repository root.
"""

from __future__ import annotations

import logging
import os
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Tuple

from .coalesce import InflightCalls
from .errors import CircularDependencyError, InvalidContextUsage
from .fingerprint import compute_fingerprint
from .registry import FileInfoProvider, ProviderRegistry, call_provider
from .schema import CacheEntry, CacheMetadata, Fingerprint, InfoResult, InfoSource, MissReason
from .store import CacheStore

LOGGER = logging.getLogger(__name__)

# (id(context), signature) pairs for the computations on the current logical call stack.
_CALL_CHAIN: ContextVar[Tuple[Tuple[int, str], ...]] = ContextVar(
    "artifact_cache_call_chain", default=()
)


class FileInfoContext:
    """Resolves derived info for paths relative to a repository or worktree root."""

    def __init__(
        self,
        repository_root: Path | str,
        *,
        store: CacheStore,
        registry: ProviderRegistry,
        worktree_root: Path | str | None = None,
        repository: "FileInfoContext | None" = None,
        coalesce: bool = True,
    ) -> None:
        self.repository_root = Path(repository_root).resolve()
        self.worktree_root = Path(worktree_root).resolve() if worktree_root is not None else None
        self.repository = repository
        self.store = store
        self.registry = registry

        if self.worktree_root is not None and repository is None:
            raise InvalidContextUsage(
                "Worktree contexts must be provided with a repository context."
            )
        if self.worktree_root is None and repository is not None:
            raise InvalidContextUsage(
                "Repository contexts must not link to another context."
            )
        if repository is not None and repository.is_worktree:
            raise InvalidContextUsage(
                "A worktree context must link to a repository context, not another worktree."
            )

        self._inflight = InflightCalls() if coalesce else None

    @property
    def is_worktree(self) -> bool:
        return self.worktree_root is not None

    @property
    def root(self) -> Path:
        """Directory that relative paths resolve against."""
        return self.worktree_root if self.worktree_root is not None else self.repository_root

    @property
    def coalesces(self) -> bool:
        return self._inflight is not None

    def absolute_path(self, relative_path: str) -> Path:
        return Path(os.path.normpath(self.root / relative_path))

    def __repr__(self) -> str:
        kind = "worktree" if self.is_worktree else "repository"
        return f"<{type(self).__name__} {kind} root={self.root}>"

    async def get_file_content(self, relative_path: str) -> str | None:
        """Read a text file under this context's root; ``None`` when it does not exist."""
        absolute = self.absolute_path(relative_path)
        try:
            return absolute.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            LOGGER.error("Error reading file content for %s", absolute, exc_info=True)
            raise

    async def get_file_stats(self, relative_path: str) -> Fingerprint | None:
        """Fingerprint the repository's copy of ``relative_path``."""
        if self.is_worktree:
            raise InvalidContextUsage(
                "get_file_stats is only available on repository contexts."
            )
        return compute_fingerprint(self.absolute_path(relative_path))

    async def delete_cache(self) -> bool:
        """Drop every cache entry owned by this worktree."""
        if not self.is_worktree:
            LOGGER.warning("Attempted to delete cache on a repository context; ignoring.")
            return False
        return self.store.delete_context_tree(self)

    async def get_info(self, info_type: str, relative_path: str) -> Any:
        """Return up-to-date derived data, or ``None`` when none is available."""
        result = await self.lookup(info_type, relative_path)
        return result.data

    async def lookup(self, info_type: str, relative_path: str) -> InfoResult:
        """Resolve derived data and report where it came from or why it is missing."""
        signature = f"{info_type}:{relative_path}"
        chain = self._current_chain()
        if signature in chain:
            LOGGER.error("Circular dependency detected: %s", " -> ".join([*chain, signature]))
            raise CircularDependencyError(signature, chain)

        token = _CALL_CHAIN.set(_CALL_CHAIN.get() + ((id(self), signature),))
        try:
            if self._inflight is None:
                return await self._resolve(info_type, relative_path)
            return await self._inflight.run(
                signature,
                lambda: self._resolve(info_type, relative_path),
                chain=chain,
            )
        finally:
            _CALL_CHAIN.reset(token)

    def _current_chain(self) -> Tuple[str, ...]:
        owner = id(self)
        return tuple(signature for context_id, signature in _CALL_CHAIN.get() if context_id == owner)

    async def _resolve(self, info_type: str, relative_path: str) -> InfoResult:
        provider = self.registry.lookup(info_type)
        if provider is None:
            LOGGER.error("No provider registered for info type: %s", info_type)
            return InfoResult.missing(MissReason.PROVIDER_NOT_REGISTERED)

        absolute = self.absolute_path(relative_path)
        current = compute_fingerprint(absolute)
        if current is None:
            return InfoResult.missing(MissReason.FILE_ABSENT)

        try:
            return await self._resolve_present(provider, info_type, relative_path, absolute, current)
        except CircularDependencyError:
            raise
        except Exception:
            LOGGER.exception("Error in get_info for %s:%s", info_type, relative_path)
            return InfoResult.missing(MissReason.PROVIDER_ERROR)

    async def _resolve_present(
        self,
        provider: FileInfoProvider,
        info_type: str,
        relative_path: str,
        absolute: Path,
        current: Fingerprint,
    ) -> InfoResult:
        cache_path = self.store.path_for(self, info_type, relative_path)
        cached = self.store.read(cache_path)
        if cached is not None and cached.metadata.source_file_path != str(absolute):
            # Distinct paths such as "a/b.py" and "a__b.py" share one encoded filename.
            LOGGER.debug("Cache entry %s belongs to %s", cache_path, cached.metadata.source_file_path)
            cached = None
        if cached is not None:
            metadata = cached.metadata
            if metadata.mtime == current.mtime and metadata.size == current.size:
                LOGGER.debug("Cache hit (stat) for %s:%s", info_type, relative_path)
                return InfoResult.found(cached.data, InfoSource.CACHE)
            if metadata.hash == current.hash:
                LOGGER.debug("Cache hit (hash) for %s:%s", info_type, relative_path)
                return InfoResult.found(cached.data, InfoSource.CACHE)

        if self.repository is not None:
            promoted = await self._promote(info_type, relative_path, current)
            if promoted is not None:
                self._persist(cache_path, absolute, current, promoted)
                return InfoResult.found(promoted, InfoSource.PROMOTED)

        data = await call_provider(provider, relative_path, self)
        if data is None:
            return InfoResult.missing(MissReason.NO_DATA)
        self._persist(cache_path, absolute, current, data)
        return InfoResult.found(data, InfoSource.COMPUTED)

    async def _promote(self, info_type: str, relative_path: str, current: Fingerprint) -> Any:
        assert self.repository is not None
        repository_stats = await self.repository.get_file_stats(relative_path)
        if repository_stats is None or repository_stats.hash != current.hash:
            return None
        result = await self.repository.lookup(info_type, relative_path)
        if result.data is None:
            return None
        LOGGER.debug("Promoted %s:%s from repository cache", info_type, relative_path)
        return result.data

    def _persist(self, cache_path: Path, absolute: Path, current: Fingerprint, data: Any) -> None:
        entry = CacheEntry(
            metadata=CacheMetadata.from_fingerprint(str(absolute), current),
            data=data,
        )
        self.store.write(cache_path, entry)


class RepositoryContext(FileInfoContext):
    """Context rooted at the canonical repository checkout."""

    def __init__(
        self,
        repository_root: Path | str,
        *,
        store: CacheStore,
        registry: ProviderRegistry,
        coalesce: bool = True,
    ) -> None:
        super().__init__(repository_root, store=store, registry=registry, coalesce=coalesce)


class WorktreeContext(FileInfoContext):
    """Context rooted at an isolated worktree that falls back to its repository."""

    def __init__(
        self,
        worktree_root: Path | str,
        repository: FileInfoContext | None,
        *,
        coalesce: bool = True,
    ) -> None:
        if repository is None:
            raise InvalidContextUsage(
                "Worktree contexts must be provided with a repository context."
            )
        super().__init__(
            repository.repository_root,
            store=repository.store,
            registry=repository.registry,
            worktree_root=worktree_root,
            repository=repository,
            coalesce=coalesce,
        )
