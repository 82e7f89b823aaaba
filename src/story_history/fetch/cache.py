"""Content-addressed disk cache for idempotent remote reads."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote, urlencode

from story_history.errors import CacheWriteError, CorruptCacheError

if TYPE_CHECKING:
    from story_history.fetch.fetcher import FetchRequest

logger = logging.getLogger(__name__)


def canonical_target(request: FetchRequest) -> str:
    """Render ``url?query`` with parameters sorted so equal requests render equally."""
    query = unquote(urlencode(sorted(request.params.items()), doseq=True))
    return f"{request.url}?{query}"


def cache_key(request: FetchRequest) -> str:
    return hashlib.md5(canonical_target(request).encode("utf-8")).hexdigest()  # noqa: S324


class ResponseCache:
    """One JSON file per cache key under ``directory``.

    Concurrent misses on the same key may both write; the last write wins.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self._directory / key

    async def read(self, key: str) -> dict[str, Any] | None:
        """Return the cached object, ``None`` on a miss.

        Raises ``CorruptCacheError`` when the entry exists but is not a JSON object.
        """
        return await asyncio.to_thread(self._read, key)

    async def write(self, key: str, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, key, payload)

    def _read(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise CorruptCacheError(f"Cache entry {path} is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise CorruptCacheError(
                f"Cache entry {path} holds a {type(payload).__name__}, expected an object"
            )
        logger.debug("Cache hit — key=%s", key)
        return payload

    def _write(self, key: str, payload: dict[str, Any]) -> None:
        path = self.path_for(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as exc:
            raise CacheWriteError(f"Failed to write cache entry {path}") from exc
        logger.debug("Cache stored — key=%s", key)
