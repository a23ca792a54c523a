"""BulkheadExecutor: concurrency caps, queue overflow, fire-and-forget futures, shutdown."""

import asyncio

import pytest

from app.scalability.bulkhead import BulkheadExecutor, BulkheadFullError


@pytest.mark.asyncio
async def test_submit_runs_task():
    bulk = BulkheadExecutor(max_concurrent=2, max_queued=5)

    async def task(x):
        return x * 2

    assert await bulk.submit(task, 21) == 42
    await bulk.shutdown()


@pytest.mark.asyncio
async def test_concurrency_cap():
    bulk = BulkheadExecutor(max_concurrent=2, max_queued=10)
    running = 0
    max_running = 0

    async def work():
        nonlocal running, max_running
        running += 1
        max_running = max(max_running, running)
        await asyncio.sleep(0.02)
        running -= 1
        return 1

    futures = [bulk.submit_nowait(work) for _ in range(5)]
    results = await asyncio.gather(*futures)
    assert results == [1] * 5
    assert max_running <= 2
    await bulk.shutdown()


@pytest.mark.asyncio
async def test_queue_overflow_raises():
    """With max_queued=1, a second submit before the worker drains the queue overflows."""
    bulk = BulkheadExecutor(max_concurrent=1, max_queued=1)

    async def slow():
        await asyncio.sleep(0.02)
        return 1

    first = bulk.submit_nowait(slow)
    with pytest.raises(BulkheadFullError) as exc:
        bulk.submit_nowait(slow)
    assert "queue full" in str(exc.value).lower()
    assert bulk.pending_count == 1
    assert await first == 1
    await bulk.shutdown()


@pytest.mark.asyncio
async def test_exception_lands_on_future():
    bulk = BulkheadExecutor(max_concurrent=1, max_queued=5)

    async def boom():
        raise ValueError("nope")

    future = bulk.submit_nowait(boom)
    with pytest.raises(ValueError):
        await future
    assert await bulk.submit(asyncio.sleep, 0, "still running") == "still running"
    await bulk.shutdown()


@pytest.mark.asyncio
async def test_shutdown_waits_for_inflight_then_rejects():
    bulk = BulkheadExecutor(max_concurrent=1, max_queued=5)
    done = []

    async def work(n):
        await asyncio.sleep(0.01)
        done.append(n)

    futures = [bulk.submit_nowait(work, n) for n in range(3)]
    await bulk.shutdown(timeout=1)
    assert done == [0, 1, 2]
    assert all(f.done() for f in futures)
    with pytest.raises(BulkheadFullError):
        bulk.submit_nowait(work, 4)


@pytest.mark.asyncio
async def test_shutdown_timeout_cancels_pending():
    bulk = BulkheadExecutor(max_concurrent=1, max_queued=5)

    async def hang():
        await asyncio.sleep(10)

    futures = [bulk.submit_nowait(hang) for _ in range(3)]
    await bulk.shutdown(timeout=0.05)
    assert all(f.cancelled() for f in futures)
    assert bulk.active_count == 0
