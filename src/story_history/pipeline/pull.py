"""Pull orchestrator: page through every story and import its full history."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from story_history.errors import DocumentStoreError, FetchError
from story_history.remote.client import HISTORY_PAGE_SIZE, RECORDS_PAGE_SIZE

if TYPE_CHECKING:
    from collections.abc import Coroutine, Iterable

    from story_history.pipeline.formatting import SnapshotFormatter
    from story_history.remote.client import RemoteServiceClient
    from story_history.sync.engine import RevisionSyncEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_together(coros: Iterable[Coroutine[Any, Any, T]]) -> list[T]:
    """Run ``coros`` concurrently and return their results in order.

    The first exception cancels the rest and is re-raised as itself.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except ExceptionGroup as failures:
        raise failures.exceptions[0] from None
    return [task.result() for task in tasks]


@dataclass
class PullSummary:
    records: int = 0
    revisions: int = 0
    failed: int = 0

    def add(self, other: PullSummary) -> None:
        self.records += other.records
        self.revisions += other.revisions
        self.failed += other.failed


class PullOrchestrator:
    """Drive the bulk import of every story's revision history.

    Record pages are walked one after another; the stories on a page are
    imported concurrently, with outbound calls bounded by the fetch queue.
    A story whose history cannot be fetched or stored is logged and counted
    as failed so a later pull can retry it. Fatal errors propagate.
    """

    def __init__(
        self,
        remote: RemoteServiceClient,
        engine: RevisionSyncEngine,
        formatter: SnapshotFormatter,
        *,
        workspace_id: str,
    ) -> None:
        self._remote = remote
        self._engine = engine
        self._formatter = formatter
        self._workspace_id = workspace_id

    async def pull_all(self) -> PullSummary:
        total = await self._remote.count_records()
        logger.info("Pulling history for %d stories", total)

        summary = PullSummary()
        for start in range(1, total + 1, RECORDS_PAGE_SIZE):
            page_summary = await self.pull_records(start)
            summary.add(page_summary)
            logger.info(
                "Pulled stories %d-%d of %d — revisions=%d failed=%d",
                start,
                min(start + RECORDS_PAGE_SIZE - 1, total),
                total,
                page_summary.revisions,
                page_summary.failed,
            )

        logger.info(
            "Pull complete — stories=%d revisions=%d failed=%d",
            summary.records,
            summary.revisions,
            summary.failed,
        )
        return summary

    async def pull_records(self, start: int) -> PullSummary:
        """Import the history of every story on the page beginning at ``start``."""
        page = await self._remote.list_records(start, RECORDS_PAGE_SIZE)
        imported = await _run_together(self.pull_history(record) for record in page.results)

        summary = PullSummary(records=len(page.results))
        for count in imported:
            if count is None:
                summary.failed += 1
            else:
                summary.revisions += count
        return summary

    async def pull_revisions(self, record_id: str) -> list[dict[str, Any]]:
        """Fetch every snapshot page of a story, concatenated in request order."""
        first = await self._remote.list_revision_history(record_id, self._workspace_id, 0)
        starts = range(HISTORY_PAGE_SIZE, first.total_count, HISTORY_PAGE_SIZE)
        rest = await _run_together(
            self._remote.list_revision_history(record_id, self._workspace_id, start)
            for start in starts
        )

        results = list(first.results)
        for page in rest:
            results.extend(page.results)
        return results

    async def pull_history(self, record: dict[str, Any]) -> int | None:
        """Import one story's history; return the revision count or ``None`` on failure."""
        story_id = self._formatter.story_id(record)
        try:
            results = await self.pull_revisions(story_id)
            if not results:
                logger.debug("No revisions in story %s", story_id)
                return 0
            snapshots = self._formatter.format_history(results, record)
            revisions = await self._engine.import_history(story_id, snapshots)
        except FetchError:
            logger.exception("Failed to fetch history for story %s", story_id)
            return None
        except DocumentStoreError:
            logger.exception("Failed to store history for story %s", story_id)
            return None
        return len(revisions)
