# tests/unit/test_inflight.py
"""针对 `insight_bff.inflight.InflightMap` 的单元测试。"""

import asyncio

import pytest

from insight_bff.inflight import InflightMap


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_task() -> None:
    inflight = InflightMap()
    started = 0
    gate = asyncio.Event()

    async def work() -> str:
        nonlocal started
        started += 1
        await gate.wait()
        return "done"

    waiters = [asyncio.create_task(inflight.run("c1", "de", work)) for _ in range(5)]
    await asyncio.sleep(0)
    assert inflight.size == 1
    assert inflight.contains("c1", "de")

    gate.set()
    results = await asyncio.gather(*waiters)

    assert results == ["done"] * 5
    assert started == 1
    assert inflight.size == 0


@pytest.mark.asyncio
async def test_different_keys_run_independently() -> None:
    inflight = InflightMap()
    calls: list[tuple[str, str]] = []

    def factory(cid: str, lang: str):
        async def work() -> str:
            calls.append((cid, lang))
            return f"{cid}:{lang}"

        return work

    results = await asyncio.gather(
        inflight.run("c1", "de", factory("c1", "de")),
        inflight.run("c1", "fr", factory("c1", "fr")),
        inflight.run("c2", "de", factory("c2", "de")),
    )
    assert results == ["c1:de", "c1:fr", "c2:de"]
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_failure_is_shared_and_entry_is_removed() -> None:
    inflight = InflightMap()

    async def boom() -> None:
        await asyncio.sleep(0)
        raise RuntimeError("resolver failed")

    results = await asyncio.gather(
        inflight.run("c1", "de", boom),
        inflight.run("c1", "de", boom),
        return_exceptions=True,
    )
    assert all(isinstance(r, RuntimeError) for r in results)
    assert inflight.size == 0

    async def ok() -> str:
        return "recovered"

    assert await inflight.run("c1", "de", ok) == "recovered"


@pytest.mark.asyncio
async def test_caller_timeout_does_not_cancel_shared_task() -> None:
    """某个调用方超时只放弃自己的等待，共享任务继续运行到完成。"""
    inflight = InflightMap()
    finished = asyncio.Event()

    async def slow() -> str:
        await asyncio.sleep(0.05)
        finished.set()
        return "late"

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(inflight.run("c1", "de", slow), timeout=0.001)

    assert inflight.contains("c1", "de")
    await inflight.drain()
    assert finished.is_set()
    assert inflight.size == 0
