"""Tests for the bulk pull orchestrator."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from story_history.errors import (
    DocumentStoreError,
    FetchError,
    MalformedResponseError,
    RepeatedTimeoutError,
)
from story_history.pipeline.formatting import SnapshotFormatter
from story_history.pipeline.pull import PullOrchestrator, PullSummary
from story_history.remote.client import Page
from story_history.sync.engine import RevisionSyncEngine


def _snapshot(day: int, state: str) -> dict:
    return {"_ValidFrom": f"2024-03-{day:02d}T09:00:00Z", "ScheduleState": state}


@pytest.fixture
def remote() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def orchestrator(remote, store, tracked, field_config) -> PullOrchestrator:
    return PullOrchestrator(
        remote,
        RevisionSyncEngine(store, tracked),
        SnapshotFormatter(field_config),
        workspace_id="111",
    )


async def test_pull_revisions_concatenates_in_request_order(
    orchestrator: PullOrchestrator, remote: AsyncMock
) -> None:
    """Later pages may finish first; results still follow page order."""
    delays = {0: 0, 100: 0.03, 200: 0.0}

    async def history(_record_id: str, _workspace_id: str, start: int) -> Page:
        await asyncio.sleep(delays[start])
        return Page(results=[{"start": start}], total_count=250)

    remote.list_revision_history.side_effect = history

    results = await orchestrator.pull_revisions("42")

    assert results == [{"start": 0}, {"start": 100}, {"start": 200}]


async def test_pull_revisions_single_page(
    orchestrator: PullOrchestrator, remote: AsyncMock
) -> None:
    """A short history needs exactly one request."""
    remote.list_revision_history.return_value = Page(results=[{"a": 1}], total_count=1)

    assert await orchestrator.pull_revisions("42") == [{"a": 1}]
    remote.list_revision_history.assert_awaited_once_with("42", "111", 0)


async def test_pull_history_imports_chain(
    orchestrator: PullOrchestrator, remote: AsyncMock, store
) -> None:
    """A story's snapshots become its stored revision chain."""
    remote.list_revision_history.return_value = Page(
        results=[_snapshot(1, "Defined"), _snapshot(2, "In-Progress")], total_count=2
    )

    assert await orchestrator.pull_history({"ObjectID": 42}) == 2
    chain = store.revisions("42")
    assert [r.is_open for r in chain] == [False, True]


async def test_pull_history_without_snapshots(
    orchestrator: PullOrchestrator, remote: AsyncMock, store
) -> None:
    """A story with no history imports nothing."""
    remote.list_revision_history.return_value = Page(results=[], total_count=0)

    assert await orchestrator.pull_history({"ObjectID": 42}) == 0
    assert store.documents == {}


@pytest.mark.parametrize("error", [FetchError("down"), DocumentStoreError("full")])
async def test_pull_history_reports_non_fatal_failure(
    orchestrator: PullOrchestrator, remote: AsyncMock, error: Exception
) -> None:
    """Per-story failures are logged and reported as None."""
    remote.list_revision_history.side_effect = error

    assert await orchestrator.pull_history({"ObjectID": 42}) is None


async def test_pull_history_propagates_fatal_errors(
    orchestrator: PullOrchestrator, remote: AsyncMock
) -> None:
    """Fatal errors stop the pull."""
    remote.list_revision_history.side_effect = RepeatedTimeoutError("timed out twice")

    with pytest.raises(RepeatedTimeoutError):
        await orchestrator.pull_history({"ObjectID": 42})


async def test_pull_all_walks_every_record_page(
    orchestrator: PullOrchestrator, remote: AsyncMock, store
) -> None:
    """Record pages start at 1 and step by the page size; failures are counted."""
    remote.count_records.return_value = 201

    async def records(start: int, _page_size: int) -> Page:
        if start == 1:
            return Page(results=[{"ObjectID": 1}, {"ObjectID": 2}], total_count=201)
        return Page(results=[{"ObjectID": 3}], total_count=201)

    async def history(record_id: str, _workspace_id: str, _start: int) -> Page:
        if record_id == "2":
            raise FetchError("down")
        return Page(results=[_snapshot(1, "Defined")], total_count=1)

    remote.list_records.side_effect = records
    remote.list_revision_history.side_effect = history

    summary = await orchestrator.pull_all()

    assert [c.args[0] for c in remote.list_records.await_args_list] == [1, 201]
    assert summary == PullSummary(records=3, revisions=2, failed=1)
    assert store.revisions("1")
    assert store.revisions("3")
    assert store.revisions("2") == []


async def test_pull_all_with_no_records(
    orchestrator: PullOrchestrator, remote: AsyncMock
) -> None:
    """An empty workspace lists no pages."""
    remote.count_records.return_value = 0

    assert await orchestrator.pull_all() == PullSummary()
    remote.list_records.assert_not_awaited()


async def test_fatal_error_cancels_sibling_stories(
    orchestrator: PullOrchestrator, remote: AsyncMock, store
) -> None:
    """Once one story hits a fatal error, no other story on the page writes history."""

    async def history(record_id: str, _workspace_id: str, _start: int) -> Page:
        if record_id == "1":
            raise MalformedResponseError("html")
        await asyncio.sleep(0.01)
        return Page(results=[_snapshot(1, "Defined")], total_count=1)

    remote.list_records.return_value = Page(
        results=[{"ObjectID": 1}, {"ObjectID": 2}], total_count=2
    )
    remote.list_revision_history.side_effect = history

    with pytest.raises(MalformedResponseError):
        await orchestrator.pull_records(1)
    await asyncio.sleep(0.05)

    assert store.documents == {}
    assert store.index_calls == 0


async def test_fatal_page_error_is_raised_unwrapped(
    orchestrator: PullOrchestrator, remote: AsyncMock
) -> None:
    """A fatal error on a later history page reaches the caller as itself."""
    pages_finished: list[int] = []

    async def history(_record_id: str, _workspace_id: str, start: int) -> Page:
        if start == 100:
            raise RepeatedTimeoutError("timed out twice")
        if start == 200:
            await asyncio.sleep(0.01)
        pages_finished.append(start)
        return Page(results=[{"start": start}], total_count=250)

    remote.list_revision_history.side_effect = history

    with pytest.raises(RepeatedTimeoutError):
        await orchestrator.pull_revisions("42")
    await asyncio.sleep(0.05)

    assert pages_finished == [0]
