"""Bounded-concurrency admission for outbound calls to the remote service."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 100


class FetchQueue:
    """Run submitted jobs with at most ``concurrency`` executing at once.

    Waiting jobs are admitted in submission order. The queue does no retrying
    or caching; a failing job's exception propagates to its submitter.
    """

    def __init__(self, concurrency: int = DEFAULT_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)
        self._in_flight = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def submit(self, job: Callable[[], Awaitable[T]]) -> T:
        """Wait for a free slot, then run ``job`` and return its result."""
        async with self._semaphore:
            self._in_flight += 1
            try:
                return await job()
            finally:
                self._in_flight -= 1
