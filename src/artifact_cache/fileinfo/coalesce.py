"""Share one running computation between concurrent callers of the same key.

A caller that finds its key already in flight awaits the owner's future
instead of starting a second computation. Joining is refused with
``CircularDependencyError`` when the in-flight owner is itself (directly or
transitively) blocked on a computation in the joiner's call chain, which
would otherwise deadlock.

Waiters share the owner's outcome, including a ``CircularDependencyError``
raised inside the owner's computation. If the owner is cancelled, waiters
are released and retry the key themselves.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Set, TypeVar

from .errors import CircularDependencyError

T = TypeVar("T")

# Result handed to waiters when the owning task was cancelled.
_OWNER_CANCELLED = object()


class InflightCalls:
    """Per-context table of computations currently running."""

    def __init__(self) -> None:
        self._pending: Dict[str, asyncio.Future[Any]] = {}
        self._blocked_on: Dict[str, List[str]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def run(
        self,
        key: str,
        work: Callable[[], Awaitable[T]],
        *,
        chain: Sequence[str] = (),
    ) -> T:
        while True:
            existing = self._pending.get(key)
            if existing is None:
                return await self._own(key, work)
            result = await self._join(key, existing, chain)
            if result is not _OWNER_CANCELLED:
                return result

    async def _own(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            result = await work()
        except asyncio.CancelledError:
            future.set_result(_OWNER_CANCELLED)
            raise
        except BaseException as error:
            future.set_exception(error)
            # Waiters re-raise the error themselves; avoid the unretrieved warning.
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            if self._pending.get(key) is future:
                del self._pending[key]

    async def _join(self, key: str, future: asyncio.Future[Any], chain: Sequence[str]) -> Any:
        if self._reaches(key, set(chain)):
            raise CircularDependencyError(key, chain)
        for holder in chain:
            self._blocked_on.setdefault(holder, []).append(key)
        try:
            return await asyncio.shield(future)
        finally:
            for holder in chain:
                waiting = self._blocked_on.get(holder)
                if not waiting:
                    continue
                waiting.remove(key)
                if not waiting:
                    del self._blocked_on[holder]

    def _reaches(self, start: str, targets: Set[str]) -> bool:
        stack = [start]
        seen: Set[str] = set()
        while stack:
            node = stack.pop()
            if node in targets:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self._blocked_on.get(node, ()))
        return False
