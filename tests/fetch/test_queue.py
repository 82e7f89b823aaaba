"""Tests for the bounded-concurrency fetch queue."""

from __future__ import annotations

import asyncio

import pytest

from story_history.fetch.queue import FetchQueue

_LIMIT = 3
_JOBS = 10


async def test_never_exceeds_concurrency() -> None:
    """No more than ``concurrency`` jobs run at the same time."""
    queue = FetchQueue(_LIMIT)
    peak = 0

    async def job() -> int:
        nonlocal peak
        peak = max(peak, queue.in_flight)
        await asyncio.sleep(0.01)
        return queue.in_flight

    results = await asyncio.gather(*(queue.submit(job) for _ in range(_JOBS)))

    assert peak == _LIMIT
    assert all(r <= _LIMIT for r in results)
    assert queue.in_flight == 0


async def test_waiting_jobs_start_in_submission_order() -> None:
    """Jobs waiting for a slot are admitted first-in, first-out."""
    queue = FetchQueue(1)
    started: list[int] = []

    def make_job(n: int):
        async def job() -> int:
            started.append(n)
            await asyncio.sleep(0)
            return n

        return job

    results = await asyncio.gather(*(queue.submit(make_job(n)) for n in range(5)))

    assert started == [0, 1, 2, 3, 4]
    assert results == [0, 1, 2, 3, 4]


async def test_failing_job_releases_its_slot() -> None:
    """A job's exception reaches its submitter and frees the slot."""
    queue = FetchQueue(1)

    async def boom() -> None:
        raise RuntimeError("boom")

    async def ok() -> str:
        return "ok"

    with pytest.raises(RuntimeError, match="boom"):
        await queue.submit(boom)

    assert queue.in_flight == 0
    assert await queue.submit(ok) == "ok"


def test_rejects_non_positive_concurrency() -> None:
    """A queue needs at least one slot."""
    with pytest.raises(ValueError, match="at least 1"):
        FetchQueue(0)
