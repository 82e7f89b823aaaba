"""Resilient fetch layer: queue admission, optional read cache, one retry."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from story_history.errors import FetchError, MalformedResponseError, RepeatedTimeoutError
from story_history.fetch.cache import ResponseCache, cache_key
from story_history.fetch.queue import FetchQueue

if TYPE_CHECKING:
    from story_history.config import FetchConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchRequest:
    method: str
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    json: dict[str, Any] | None = None

    @property
    def is_read(self) -> bool:
        return self.method.upper() == "GET"


class ResilientFetcher:
    """Fetch JSON objects from the remote service.

    Every call goes through the :class:`FetchQueue`. Reads are served from the
    :class:`ResponseCache` when caching is enabled. A failed call is attempted
    exactly once more; a second timeout is fatal, any other second failure
    raises :class:`FetchError`. A body that is not a JSON object is fatal.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        config: FetchConfig,
        *,
        queue: FetchQueue | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        self._http = http
        self._config = config
        self._queue = queue or FetchQueue(config.max_in_flight)
        self._cache = cache or ResponseCache(config.cache_dir)

    @property
    def queue(self) -> FetchQueue:
        return self._queue

    async def fetch(self, request: FetchRequest) -> dict[str, Any]:
        return await self._queue.submit(lambda: self._run(request))

    async def _run(self, request: FetchRequest) -> dict[str, Any]:
        if self._config.cache_enabled and request.is_read:
            return await self._cached_fetch(request)
        return await self._fetch_with_retry(request)

    async def _cached_fetch(self, request: FetchRequest) -> dict[str, Any]:
        key = cache_key(request)
        cached = await self._cache.read(key)
        if cached is not None:
            return cached

        payload = await self._fetch_with_retry(request)
        await self._cache.write(key, payload)
        return payload

    async def _fetch_with_retry(self, request: FetchRequest) -> dict[str, Any]:
        try:
            response = await self._send(request)
        except httpx.HTTPError as exc:
            logger.warning(
                "Request failed, retrying once — %s %s: %s", request.method, request.url, exc
            )
            try:
                response = await self._send(request)
            except httpx.TimeoutException as retry_exc:
                logger.error("Connection timed out twice — %s %s", request.method, request.url)
                raise RepeatedTimeoutError(
                    f"{request.method} {request.url} timed out twice"
                ) from retry_exc
            except httpx.HTTPError as retry_exc:
                raise FetchError(
                    f"{request.method} {request.url} failed twice: {retry_exc}"
                ) from retry_exc
        return self._decode(request, response)

    async def _send(self, request: FetchRequest) -> httpx.Response:
        response = await self._http.request(
            request.method,
            request.url,
            params=request.params or None,
            json=request.json,
        )
        response.raise_for_status()
        return response

    @staticmethod
    def _decode(request: FetchRequest, response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Response is not JSON — %s %s", request.method, request.url)
            raise MalformedResponseError(
                f"{request.method} {request.url} returned a non-JSON body"
            ) from exc
        if not isinstance(payload, dict):
            logger.error("Response is not an object — %s %s", request.method, request.url)
            raise MalformedResponseError(
                f"{request.method} {request.url} returned a {type(payload).__name__}, "
                "expected an object"
            )
        return payload
