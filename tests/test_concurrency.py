"""Tests for the bounded pool and lanes primitives."""

import asyncio

import pytest

from printbrain.services.concurrency import BoundedPool, backoff_delay, retry_async, run_lanes


async def test_bounded_pool_limits_in_flight():
    pool = BoundedPool(3)
    peak = {"value": 0}

    async def work(item):
        peak["value"] = max(peak["value"], pool.active)
        await asyncio.sleep(0.01)
        return item * 2

    results = await pool.map(work, range(10))

    assert results == [i * 2 for i in range(10)]
    assert peak["value"] == 3


async def test_bounded_pool_collects_exceptions():
    async def work(item):
        if item == 2:
            raise ValueError("boom")
        return item

    results = await BoundedPool(2).map(work, range(4), return_exceptions=True)

    assert results[:2] == [0, 1]
    assert isinstance(results[2], ValueError)


def test_pool_size_must_be_positive():
    with pytest.raises(ValueError):
        BoundedPool(0)


async def test_lanes_process_every_item_once():
    seen = []
    running = {"now": 0, "peak": 0}

    async def worker(item, index):
        running["now"] += 1
        running["peak"] = max(running["peak"], running["now"])
        await asyncio.sleep(0.001 * (item % 3))
        seen.append((index, item))
        running["now"] -= 1

    count = await run_lanes(list(range(20)), worker, lanes=4)

    assert count == 20
    assert sorted(seen) == [(i, i) for i in range(20)]
    assert running["peak"] <= 4


async def test_retry_async_retries_only_retryable_errors():
    calls = {"n": 0}

    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("reset")
        return "ok"

    result = await retry_async(
        flaky,
        attempts=5,
        is_retryable=lambda e: isinstance(e, ConnectionError),
        delay=lambda attempt, error: 0,
    )
    assert result == "ok"
    assert calls["n"] == 3

    async def broken():
        raise KeyError("nope")

    with pytest.raises(KeyError):
        await retry_async(broken, attempts=5, is_retryable=lambda e: False, delay=lambda a, e: 0)


def test_backoff_delay_is_capped():
    assert backoff_delay(10, base=1.0, cap=30.0) == 30.0
    assert 1.0 <= backoff_delay(0, base=1.0, cap=30.0, jitter=1.0) <= 2.0


async def test_retry_async_passes_error_to_delay():
    seen = []

    async def flaky():
        if not seen:
            raise ConnectionError("reset")
        return "ok"

    def delay(attempt, error):
        seen.append((attempt, str(error)))
        return 0

    assert await retry_async(flaky, attempts=3, is_retryable=lambda e: True, delay=delay) == "ok"
    assert seen == [(0, "reset")]
