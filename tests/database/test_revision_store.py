"""Tests for RevisionRepository against a mocked Cosmos container."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from story_history.database.repositories.revisions import RevisionRepository
from story_history.models.revision import Revision

ENTERED = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def _items(*docs: dict):
    async def gen(*_: object, **__: object):
        for doc in docs:
            yield doc

    return gen


class TestRevisionRepository:
    """Test the Revision Repository."""

    @pytest.fixture
    def container(self) -> MagicMock:
        container = MagicMock()
        container.create_item = AsyncMock()
        container.patch_item = AsyncMock()
        container.read_item = AsyncMock()
        return container

    @pytest.fixture
    def repo(self, container: MagicMock) -> RevisionRepository:
        mock_db = MagicMock()
        mock_db.get_container_client.return_value = container
        return RevisionRepository(mock_db)

    async def test_index_records_generated_id(
        self, repo: RevisionRepository, container: MagicMock
    ) -> None:
        """The store-generated id is written back onto the revision."""
        container.create_item.return_value = {"id": "generated-1", "story_id": "42"}
        rev = Revision(story_id="42", entered=ENTERED, fields={"Owner": "ana"})

        assert await repo.index(rev) == "generated-1"
        assert rev.id == "generated-1"
        kwargs = container.create_item.call_args.kwargs
        assert kwargs["enable_automatic_id_generation"] is True
        assert "exited" not in kwargs["body"]
        assert kwargs["body"]["fields"] == {"Owner": "ana"}

    async def test_update_patches_given_keys(
        self, repo: RevisionRepository, container: MagicMock
    ) -> None:
        """Updates become set operations on the story's partition."""
        rev = Revision(id="rev-1", story_id="42", entered=ENTERED)

        await repo.update(rev, {"exited": "2024-03-02T09:00:00Z", "duration_days": 1.0})

        container.patch_item.assert_awaited_once_with(
            item="rev-1",
            partition_key="42",
            patch_operations=[
                {"op": "set", "path": "/exited", "value": "2024-03-02T09:00:00Z"},
                {"op": "set", "path": "/duration_days", "value": 1.0},
            ],
        )

    async def test_update_requires_indexed_revision(self, repo: RevisionRepository) -> None:
        """A revision without a store id cannot be updated."""
        with pytest.raises(ValueError, match="not been indexed"):
            await repo.update(Revision(story_id="42", entered=ENTERED), {"fields": {}})

    async def test_find_open_queries_missing_exit(
        self, repo: RevisionRepository, container: MagicMock
    ) -> None:
        """Open revisions are those without an exit timestamp."""
        container.query_items = MagicMock(
            side_effect=_items(
                {"id": "rev-2", "story_id": "42", "entered": "2024-03-01T09:00:00Z", "fields": {}}
            )
        )

        result = await repo.find_open("42")

        assert [r.id for r in result] == ["rev-2"]
        assert result[0].is_open is True
        query = container.query_items.call_args.args[0]
        assert "NOT IS_DEFINED(c.exited)" in query
        assert container.query_items.call_args.kwargs["partition_key"] == "42"

    async def test_list_by_story_orders_by_entry(self, repo: RevisionRepository) -> None:
        """A story's chain is listed oldest first."""
        revisions = [Revision(story_id="42", entered=ENTERED)]
        repo.query = AsyncMock(return_value=revisions)

        assert await repo.list_by_story("42") == revisions
        assert "ORDER BY c.entered ASC" in repo.query.call_args.args[0]

    async def test_filter_counts_hits(self, repo: RevisionRepository) -> None:
        """Filter results carry their hit count."""
        repo.query = AsyncMock(return_value=[Revision(story_id="42", entered=ENTERED)])

        result = await repo.filter("SELECT * FROM c", story_id="42")

        assert result.total_hits == 1

    async def test_get_returns_none_when_missing(
        self, repo: RevisionRepository, container: MagicMock
    ) -> None:
        """A missing document reads as None."""
        from azure.cosmos.exceptions import CosmosResourceNotFoundError

        container.read_item.side_effect = CosmosResourceNotFoundError(message="gone")

        assert await repo.get("rev-9", "42") is None
