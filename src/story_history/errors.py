"""Error taxonomy for fetching and revision synchronization.

Non-fatal errors fail the enclosing operation and are logged by whoever drives
it. ``FatalError`` subclasses mean history could be corrupted if the process
continued; they bubble up to :func:`story_history.app.supervise`, which shuts
down and exits with the category's ``exit_code``.
"""

from __future__ import annotations


class StoryHistoryError(Exception):
    """Base class for all errors raised by this package."""


class FetchError(StoryHistoryError):
    """A remote call failed twice, the second time for a reason other than a timeout."""


class DocumentStoreError(StoryHistoryError):
    """The document store rejected an index or update."""


class FatalError(StoryHistoryError):
    """An integrity failure that must terminate the process."""

    exit_code = 2
    category = "fatal"


class RepeatedTimeoutError(FatalError):
    exit_code = 3
    category = "repeated-timeout"


class MalformedResponseError(FatalError):
    exit_code = 4
    category = "malformed-response"


class CorruptCacheError(FatalError):
    exit_code = 5
    category = "corrupt-cache"


class CacheWriteError(FatalError):
    exit_code = 6
    category = "cache-write"


class ConsistencyError(FatalError):
    """More than one open revision exists for a story."""

    exit_code = 7
    category = "consistency"
