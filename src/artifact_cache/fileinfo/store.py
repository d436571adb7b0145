"""On-disk JSON storage for derived-info cache entries."""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from pydantic import ValidationError

from .schema import CacheEntry

if TYPE_CHECKING:
    from .context import FileInfoContext

DEFAULT_CACHE_DIR = Path(".cache")
REPOSITORY_CACHE_DIR = "repository"
WORKTREES_CACHE_DIR = "worktrees"
PATH_SEPARATOR_REPLACEMENT = "__"
CACHE_FILE_SUFFIX = ".info"
LOGGER = logging.getLogger(__name__)


def encode_relative_path(relative_path: str) -> str:
    """Flatten ``relative_path`` into a single filename component."""
    encoded = relative_path.replace("/", PATH_SEPARATOR_REPLACEMENT)
    if os.sep != "/":
        encoded = encoded.replace(os.sep, PATH_SEPARATOR_REPLACEMENT)
    return encoded


class CacheStore:
    """Maps ``(context, info_type, relative_path)`` keys to JSON files under the repository root."""

    def __init__(self, repository_root: Path | str, cache_dir: Path | str = DEFAULT_CACHE_DIR) -> None:
        self.repository_root = Path(repository_root).resolve()
        cache_path = Path(cache_dir)
        if not cache_path.is_absolute():
            cache_path = self.repository_root / cache_path
        self.cache_root = cache_path
        self.repository_cache_root = self.cache_root / REPOSITORY_CACHE_DIR
        self.worktrees_cache_root = self.cache_root / WORKTREES_CACHE_DIR

    @classmethod
    def from_config(cls, repository_root: Path | str, config: Mapping[str, Any]) -> "CacheStore":
        paths = config.get("paths") or {}
        cache_value = paths.get("cache") if isinstance(paths, Mapping) else None
        if isinstance(cache_value, str) and cache_value.strip():
            return cls(repository_root, cache_value.strip())
        return cls(repository_root)

    def context_root(self, context: "FileInfoContext") -> Path:
        """Return the cache subdirectory owned by ``context``."""
        if context.worktree_root is None:
            return self.repository_cache_root
        return self.worktrees_cache_root / context.worktree_root.name

    def path_for(self, context: "FileInfoContext", info_type: str, relative_path: str) -> Path:
        file_name = f"{encode_relative_path(relative_path)}_{info_type}_{CACHE_FILE_SUFFIX}"
        return self.context_root(context) / file_name

    def read(self, cache_path: Path) -> CacheEntry | None:
        """Load a cache entry, treating any unreadable or malformed file as a cold cache."""
        try:
            content = cache_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            LOGGER.warning("Failed to read cache file %s", cache_path, exc_info=True)
            return None
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as error:
            LOGGER.warning("Ignoring malformed cache file %s: %s", cache_path, error)
            return None
        if not isinstance(payload, dict):
            LOGGER.warning("Ignoring cache file %s: top level is not an object", cache_path)
            return None
        metadata = payload.get("metadata")
        if not isinstance(metadata, dict) or not isinstance(metadata.get("hash"), str):
            LOGGER.warning("Ignoring cache file %s: metadata.hash is missing", cache_path)
            return None
        try:
            return CacheEntry.model_validate(payload)
        except ValidationError as error:
            LOGGER.warning("Ignoring invalid cache file %s: %s", cache_path, error)
            return None

    def write(self, cache_path: Path, entry: CacheEntry) -> bool:
        """Persist ``entry``; failures are logged and reported as ``False``."""
        try:
            cache_path.parent.mkdir(parents=True, exist_ok=True)
            cache_path.write_text(entry.to_json(), encoding="utf-8")
        except (OSError, TypeError, ValueError):
            LOGGER.warning("Failed to write cache file %s", cache_path, exc_info=True)
            return False
        return True

    def delete_context_tree(self, context: "FileInfoContext") -> bool:
        """Remove every cache file owned by a worktree context."""
        if context.worktree_root is None:
            LOGGER.warning("Refusing to delete the repository cache at %s", self.repository_cache_root)
            return False
        target = self.context_root(context)
        try:
            shutil.rmtree(target)
        except FileNotFoundError:
            return False
        except OSError:
            LOGGER.warning("Failed to delete worktree cache %s", target, exc_info=True)
            return False
        LOGGER.info("Deleted cache for worktree %s", context.worktree_root.name)
        return True

    def iter_entries(self, context: "FileInfoContext") -> Iterator[Path]:
        """Yield the cache files currently stored for ``context``."""
        root = self.context_root(context)
        if not root.is_dir():
            return
        yield from sorted(root.glob(f"*{CACHE_FILE_SUFFIX}"))

    def list_worktree_caches(self) -> list[str]:
        if not self.worktrees_cache_root.is_dir():
            return []
        return sorted(path.name for path in self.worktrees_cache_root.iterdir() if path.is_dir())
