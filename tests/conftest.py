from __future__ import annotations

import sys
import textwrap
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from artifact_cache.fileinfo import (  # noqa: E402
    CacheStore,
    ProviderRegistry,
    RepositoryContext,
    WorktreeContext,
)


@dataclass(slots=True)
class CountingProvider:
    """Provider stub that records every invocation and returns ``result(path, context)``."""

    result: Callable[[str, Any], Any] = lambda path, context: {"type": "ast", "path": path}
    calls: List[tuple[str, Any]] = field(default_factory=list)

    async def extract_info(self, relative_path: str, context: Any) -> Any:
        self.calls.append((relative_path, context))
        return self.result(relative_path, context)

    @property
    def count(self) -> int:
        return len(self.calls)


@dataclass(slots=True)
class CacheLayout:
    """Repository checkout plus two worktrees sharing one cache store."""

    repo_root: Path
    worktree_a: Path
    worktree_b: Path
    store: CacheStore
    registry: ProviderRegistry

    def repository(self, *, coalesce: bool = True) -> RepositoryContext:
        return RepositoryContext(self.repo_root, store=self.store, registry=self.registry, coalesce=coalesce)

    def write(self, root: Path, relative_path: str, content: str) -> Path:
        target = root / relative_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    def write_everywhere(self, relative_path: str, content: str) -> None:
        for root in (self.repo_root, self.worktree_a, self.worktree_b):
            self.write(root, relative_path, content)


@pytest.fixture()
def layout(tmp_path: Path) -> CacheLayout:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    worktrees = tmp_path / "worktrees"
    worktree_a = worktrees / "wt-a"
    worktree_b = worktrees / "wt-b"
    worktree_a.mkdir(parents=True)
    worktree_b.mkdir(parents=True)
    return CacheLayout(
        repo_root=repo_root,
        worktree_a=worktree_a,
        worktree_b=worktree_b,
        store=CacheStore(repo_root),
        registry=ProviderRegistry(),
    )


@pytest.fixture()
def worktree_pair(layout: CacheLayout) -> tuple[RepositoryContext, WorktreeContext, WorktreeContext]:
    repository = layout.repository()
    return (
        repository,
        WorktreeContext(layout.worktree_a, repository),
        WorktreeContext(layout.worktree_b, repository),
    )


SAMPLE_MODULE = textwrap.dedent(
    '''
    """Sample module used by provider tests."""

    from __future__ import annotations

    import json as _json
    from typing import Any, Dict
    from .helpers import format_name, slugify as make_slug

    VERSION: str = "1.0"
    _PRIVATE = 1
    DEFAULTS = {"a": 1}


    class Greeter(Base):
        """Greets people."""

        greeting: str = "Hello"
        _cache: Dict[str, Any]

        def __init__(self, name: str) -> None:
            self.name = name

        def greet(self) -> str:
            return format_name(self.name)

        def _secret(self) -> None:
            pass


    def square(value: float) -> float:
        return value * value


    async def fetch(url: str, *, timeout: int = 5) -> Dict[str, Any]:
        return {}


    def _helper() -> None:
        pass
    '''
).lstrip()


@pytest.fixture()
def sample_module() -> str:
    return SAMPLE_MODULE


@pytest.fixture()
def make_provider() -> Callable[..., CountingProvider]:
    def factory(result: Callable[[str, Any], Any] | None = None) -> CountingProvider:
        if result is None:
            return CountingProvider()
        return CountingProvider(result=result)

    return factory
