"""Repository for the revisions container (partitioned by /story_id)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from story_history.database.repositories.base import BaseRepository
from story_history.models.revision import Revision


@dataclass(frozen=True)
class FilterResult:
    total_hits: int
    hits: list[Revision] = field(default_factory=list)


class RevisionRepository(BaseRepository[Revision]):
    """Provide data access for the revisions container."""

    container_name = "revisions"
    model_class = Revision

    def to_body(self, item: Revision) -> dict[str, Any]:
        return item.to_document()

    def from_body(self, data: dict[str, Any]) -> Revision:
        return Revision.from_document(data)

    async def index(self, revision: Revision) -> str:
        """Persist a new revision and record the store id on it."""
        created = await self.create(revision)
        revision.id = created["id"]
        return revision.id

    async def update(self, revision: Revision, partial: dict[str, Any]) -> None:
        """Write ``partial`` onto the stored copy of ``revision``."""
        if revision.id is None:
            raise ValueError(f"Revision of story {revision.story_id} has not been indexed")
        await self.patch(revision.id, revision.story_id, partial)

    async def filter(
        self,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        *,
        story_id: str | None = None,
    ) -> FilterResult:
        hits = await self.query(query, parameters, partition_key=story_id)
        return FilterResult(total_hits=len(hits), hits=hits)

    async def find_open(self, story_id: str) -> list[Revision]:
        """Return the revisions of ``story_id`` that have no exit timestamp."""
        result = await self.filter(
            "SELECT * FROM c WHERE c.story_id = @story_id AND NOT IS_DEFINED(c.exited)",
            [{"name": "@story_id", "value": story_id}],
            story_id=story_id,
        )
        return result.hits

    async def list_by_story(self, story_id: str) -> list[Revision]:
        """Fetch a story's full revision chain, oldest first."""
        return await self.query(
            "SELECT * FROM c WHERE c.story_id = @story_id ORDER BY c.entered ASC",
            [{"name": "@story_id", "value": story_id}],
            partition_key=story_id,
        )
