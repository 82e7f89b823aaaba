"""Fetch layer: admission queue, disk cache and retrying fetcher."""

from story_history.fetch.cache import ResponseCache, cache_key, canonical_target
from story_history.fetch.fetcher import FetchRequest, ResilientFetcher
from story_history.fetch.queue import FetchQueue

__all__ = [
    "FetchQueue",
    "FetchRequest",
    "ResilientFetcher",
    "ResponseCache",
    "cache_key",
    "canonical_target",
]
