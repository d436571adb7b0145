"""Build contexts that share one cache store and provider registry per repository root."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .context import RepositoryContext, WorktreeContext
from .registry import ProviderRegistry
from .store import DEFAULT_CACHE_DIR, CacheStore

LOGGER = logging.getLogger(__name__)

RegistrySetup = Callable[[ProviderRegistry], None]


def _default_setup() -> Tuple[RegistrySetup, ...]:
    from ..providers import register_default_providers

    return (register_default_providers,)


@dataclass(slots=True)
class _RootState:
    store: CacheStore
    registry: ProviderRegistry
    repository: RepositoryContext
    worktrees: Dict[Path, WorktreeContext] = field(default_factory=dict)


class ContextFactory:
    """Hands out repository and worktree contexts wired to shared per-root state."""

    def __init__(
        self,
        *,
        cache_dir: Path | str = DEFAULT_CACHE_DIR,
        coalesce: bool = True,
        setup: Optional[Iterable[RegistrySetup]] = None,
        freeze: bool = True,
        default_root: Path | str | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.coalesce = coalesce
        self._setup = tuple(setup) if setup is not None else _default_setup()
        self._freeze = freeze
        self.default_root = Path(default_root).resolve() if default_root is not None else None
        self._roots: Dict[Path, _RootState] = {}

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        config_path: Optional[Path] = None,
        **kwargs: Any,
    ) -> "ContextFactory":
        project = config.get("project")
        paths_section = config.get("paths")
        cache_section = config.get("cache")

        repo_root_value = "."
        if isinstance(project, Mapping):
            candidate = project.get("repo_root")
            if isinstance(candidate, str) and candidate.strip():
                repo_root_value = candidate.strip()

        base_path = config_path.parent if config_path is not None else Path.cwd()
        repo_root = Path(repo_root_value)
        if not repo_root.is_absolute():
            repo_root = (base_path / repo_root).resolve()

        if isinstance(paths_section, Mapping):
            candidate = paths_section.get("cache")
            if isinstance(candidate, str) and candidate.strip():
                kwargs.setdefault("cache_dir", candidate.strip())

        if isinstance(cache_section, Mapping):
            coalesce_value = cache_section.get("coalesce")
            if isinstance(coalesce_value, bool):
                kwargs.setdefault("coalesce", coalesce_value)

        kwargs.setdefault("default_root", repo_root)
        return cls(**kwargs)

    def _resolve_root(self, repository_root: Path | str | None) -> Path:
        if repository_root is not None:
            return Path(repository_root).resolve()
        if self.default_root is not None:
            return self.default_root
        return Path.cwd().resolve()

    def _state(self, repository_root: Path | str | None) -> _RootState:
        root = self._resolve_root(repository_root)
        state = self._roots.get(root)
        if state is not None:
            return state

        registry = ProviderRegistry()
        for setup in self._setup:
            setup(registry)
        if self._freeze:
            registry.freeze()
        store = CacheStore(root, self.cache_dir)
        repository = RepositoryContext(root, store=store, registry=registry, coalesce=self.coalesce)
        state = _RootState(store=store, registry=registry, repository=repository)
        self._roots[root] = state
        LOGGER.debug(
            "Initialised file info cache at %s with providers: %s",
            store.cache_root,
            ", ".join(registry.info_types()),
        )
        return state

    def repository(self, repository_root: Path | str | None = None) -> RepositoryContext:
        return self._state(repository_root).repository

    def worktree(
        self,
        worktree_root: Path | str,
        repository_root: Path | str | None = None,
    ) -> WorktreeContext:
        state = self._state(repository_root)
        key = Path(worktree_root).resolve()
        context = state.worktrees.get(key)
        if context is None:
            context = WorktreeContext(key, state.repository, coalesce=self.coalesce)
            state.worktrees[key] = context
        return context

    def context(
        self,
        repository_root: Path | str | None = None,
        worktree_root: Path | str | None = None,
    ) -> RepositoryContext | WorktreeContext:
        """Return the worktree context when ``worktree_root`` is given, else the repository."""
        if worktree_root is not None:
            return self.worktree(worktree_root, repository_root)
        return self.repository(repository_root)

    def store(self, repository_root: Path | str | None = None) -> CacheStore:
        return self._state(repository_root).store

    def registry(self, repository_root: Path | str | None = None) -> ProviderRegistry:
        return self._state(repository_root).registry
