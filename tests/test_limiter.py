import asyncio
import os

import pytest

from helpers import settle
from image_decode_pool.errors import PoolConfigError
from image_decode_pool.pool import ConcurrencyLimiter, default_concurrency


@pytest.mark.parametrize("limit", [0, -2, 1.0, True, None])
def test_rejects_invalid_limit(limit):
    with pytest.raises(PoolConfigError):
        ConcurrencyLimiter(limit)


def test_default_concurrency_is_half_the_cores(monkeypatch):
    monkeypatch.setattr(os, "cpu_count", lambda: 8)
    assert default_concurrency() == 4
    monkeypatch.setattr(os, "cpu_count", lambda: 1)
    assert default_concurrency() == 1
    monkeypatch.setattr(os, "cpu_count", lambda: None)
    assert default_concurrency(fallback=6) == 3


@pytest.mark.asyncio
async def test_never_runs_more_than_limit():
    limiter = ConcurrencyLimiter(2)
    running = 0
    peak = 0

    async def job():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.01)
        running -= 1
        return "done"

    results = await asyncio.gather(*(limiter.run(job) for _ in range(7)))

    assert results == ["done"] * 7
    assert peak == 2
    assert limiter.active_count == 0 and limiter.pending_count == 0


@pytest.mark.asyncio
async def test_queued_tasks_start_in_submission_order():
    limiter = ConcurrencyLimiter(1)
    gate = asyncio.Event()
    started = []

    def job(label):
        async def _run():
            started.append(label)
            await gate.wait()
        return _run

    tasks = [asyncio.create_task(limiter.run(job(label))) for label in range(5)]
    await settle()
    assert started == [0]
    assert limiter.pending_count == 4

    gate.set()
    await asyncio.gather(*tasks)
    assert started == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_task_is_not_called_until_admitted():
    limiter = ConcurrencyLimiter(1)
    gate = asyncio.Event()
    calls = []

    async def blocker():
        await gate.wait()

    async def second():
        return "second"

    def factory():
        calls.append("called")
        return second()

    first = asyncio.create_task(limiter.run(blocker))
    queued = asyncio.create_task(limiter.run(factory))
    await settle()
    assert calls == []

    gate.set()
    assert await queued == "second"
    await first
    assert calls == ["called"]


@pytest.mark.asyncio
async def test_failure_propagates_and_frees_slot():
    limiter = ConcurrencyLimiter(1)

    async def broken():
        raise KeyError("nope")

    async def fine():
        return 42

    with pytest.raises(KeyError):
        await limiter.run(broken)
    assert limiter.active_count == 0
    assert await limiter.run(fine) == 42


@pytest.mark.asyncio
async def test_cancelled_queued_task_gives_up_its_place():
    limiter = ConcurrencyLimiter(1)
    gate = asyncio.Event()
    ran = []

    async def blocker():
        await gate.wait()

    def job(label):
        async def _run():
            ran.append(label)
        return _run

    first = asyncio.create_task(limiter.run(blocker))
    doomed = asyncio.create_task(limiter.run(job("doomed")))
    survivor = asyncio.create_task(limiter.run(job("survivor")))
    await settle()

    doomed.cancel()
    with pytest.raises(asyncio.CancelledError):
        await doomed
    assert limiter.pending_count == 1

    gate.set()
    await asyncio.gather(first, survivor)
    assert ran == ["survivor"]
    assert limiter.active_count == 0
