from __future__ import annotations

import asyncio

import pytest

from artifact_cache.fileinfo import CircularDependencyError, FileInfoContext, InfoSource
from artifact_cache.fileinfo.coalesce import InflightCalls


def _slow_provider(calls: list):
    async def provider(relative_path: str, context: FileInfoContext) -> dict:
        calls.append(relative_path)
        await asyncio.sleep(0.01)
        return {"path": relative_path}

    return provider


def test_concurrent_identical_lookups_share_one_computation(layout) -> None:
    calls: list = []
    layout.registry.register("ast", _slow_provider(calls))
    layout.write(layout.repo_root, "a.py", "x = 1\n")
    repository = layout.repository()

    async def run() -> list:
        return await asyncio.gather(*(repository.lookup("ast", "a.py") for _ in range(3)))

    results = asyncio.run(run())

    assert calls == ["a.py"]
    assert all(result.data == {"path": "a.py"} for result in results)
    assert {result.source for result in results} == {InfoSource.COMPUTED}


def test_without_coalescing_each_caller_computes(layout) -> None:
    calls: list = []
    layout.registry.register("ast", _slow_provider(calls))
    layout.write(layout.repo_root, "a.py", "x = 1\n")
    repository = layout.repository(coalesce=False)

    async def run() -> list:
        return await asyncio.gather(repository.get_info("ast", "a.py"), repository.get_info("ast", "a.py"))

    assert asyncio.run(run()) == [{"path": "a.py"}, {"path": "a.py"}]
    assert calls == ["a.py", "a.py"]
    assert not repository.coalesces


def test_different_keys_run_independently(layout) -> None:
    calls: list = []
    layout.registry.register("ast", _slow_provider(calls))
    layout.write(layout.repo_root, "a.py", "x = 1\n")
    layout.write(layout.repo_root, "b.py", "y = 2\n")
    repository = layout.repository()

    async def run() -> list:
        return await asyncio.gather(repository.get_info("ast", "a.py"), repository.get_info("ast", "b.py"))

    assert asyncio.run(run()) == [{"path": "a.py"}, {"path": "b.py"}]
    assert sorted(calls) == ["a.py", "b.py"]


def test_cross_task_cycle_raises_instead_of_deadlocking(layout) -> None:
    async def run() -> list:
        first_started = asyncio.Event()
        second_started = asyncio.Event()

        async def first(relative_path: str, context: FileInfoContext):
            first_started.set()
            await second_started.wait()
            return await context.get_info("second", relative_path)

        async def second(relative_path: str, context: FileInfoContext):
            second_started.set()
            await first_started.wait()
            return await context.get_info("first", relative_path)

        layout.registry.register("first", first)
        layout.registry.register("second", second)
        repository = layout.repository()
        return await asyncio.wait_for(
            asyncio.gather(
                repository.get_info("first", "a.py"),
                repository.get_info("second", "a.py"),
                return_exceptions=True,
            ),
            timeout=5,
        )

    layout.write(layout.repo_root, "a.py", "x = 1\n")
    results = asyncio.run(run())

    assert all(isinstance(result, CircularDependencyError) for result in results)


def test_inflight_table_is_cleared_after_failure() -> None:
    calls = InflightCalls()

    async def failing() -> None:
        raise RuntimeError("boom")

    async def run() -> None:
        with pytest.raises(RuntimeError):
            await calls.run("ast:a.py", failing)

    asyncio.run(run())

    assert "ast:a.py" not in calls
    assert calls.pending_count == 0


def test_waiters_receive_the_owner_result() -> None:
    calls = InflightCalls()
    started = []

    async def work() -> str:
        started.append(True)
        await asyncio.sleep(0.01)
        return "value"

    async def run() -> list:
        return await asyncio.gather(calls.run("k", work), calls.run("k", work))

    assert asyncio.run(run()) == ["value", "value"]
    assert started == [True]


def test_cancelled_owner_releases_waiters_to_retry(layout) -> None:
    calls: list = []

    async def provider(relative_path: str, context: FileInfoContext) -> dict:
        calls.append(relative_path)
        if len(calls) == 1:
            await asyncio.sleep(10)
        return {"ok": True}

    layout.registry.register("ast", provider)
    layout.write(layout.repo_root, "a.py", "x = 1\n")
    repository = layout.repository()

    async def run() -> tuple:
        owner = asyncio.create_task(repository.get_info("ast", "a.py"))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(repository.get_info("ast", "a.py"))
        await asyncio.sleep(0)
        owner.cancel()
        results = await asyncio.gather(waiter, return_exceptions=True)
        await asyncio.gather(owner, return_exceptions=True)
        return owner.cancelled(), results

    owner_cancelled, results = asyncio.run(run())

    assert owner_cancelled
    assert results == [{"ok": True}]
    assert calls == ["a.py", "a.py"]


def test_waiters_share_the_owner_cycle_error(layout) -> None:
    async def recursive(relative_path: str, context: FileInfoContext):
        await asyncio.sleep(0.01)
        return await context.get_info("ast", relative_path)

    layout.registry.register("ast", recursive)
    layout.write(layout.repo_root, "a.py", "x = 1\n")
    repository = layout.repository()

    async def run() -> list:
        return await asyncio.gather(
            repository.get_info("ast", "a.py"),
            repository.get_info("ast", "a.py"),
            return_exceptions=True,
        )

    first, second = asyncio.run(run())

    assert isinstance(first, CircularDependencyError)
    assert second is first
