"""Revision synchronization: turn observations into intervals, patches or no-ops.

Two write paths share the revisions container:

* :meth:`RevisionSyncEngine.import_history` builds a story's full chain from its
  snapshot timeline. The caller guarantees the story has no stored revisions.
* :meth:`RevisionSyncEngine.apply_observation` applies one live observation
  against the already-stored chain.

At most one revision per story may be open. The store gives no transactions,
so this holds only while a single writer handles each story.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from azure.cosmos.exceptions import CosmosHttpResponseError

from story_history.errors import ConsistencyError, DocumentStoreError
from story_history.models.observation import FullSnapshot, PartialUpdate, classify_observation
from story_history.models.revision import Revision, strip_temporal

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from story_history.database.repositories.revisions import RevisionRepository
    from story_history.fields import TrackedFieldSet
    from story_history.models.observation import Observation

logger = logging.getLogger(__name__)


class ApplyOutcome(StrEnum):
    OPENED = "opened"
    OPENED_WITHOUT_PREVIOUS = "opened_without_previous"
    PATCHED = "patched"
    DROPPED = "dropped"
    STALE = "stale"


class RevisionSyncEngine:
    """Maintain each story's gap-free revision chain in the document store."""

    def __init__(self, repository: RevisionRepository, tracked: TrackedFieldSet) -> None:
        self._repo = repository
        self._tracked = tracked

    async def import_history(
        self, story_id: str, snapshots: Sequence[FullSnapshot]
    ) -> list[Revision]:
        """Persist a story's complete timeline as a contiguous chain of revisions.

        Each revision exits when its successor enters; the last stays open.
        """
        if not snapshots:
            logger.debug("No snapshots for story %s, nothing to import", story_id)
            return []

        ordered = sorted(snapshots, key=lambda s: s.entered)
        revisions = [
            Revision(story_id=story_id, entered=s.entered, fields=dict(s.fields)) for s in ordered
        ]
        for current, successor in zip(revisions, revisions[1:], strict=False):
            current.close(successor.entered)

        for revision in revisions:
            await self._index(revision)

        logger.debug("Imported %d revisions for story %s", len(revisions), story_id)
        return revisions

    async def apply_observation(self, story_id: str, observation: Observation) -> ApplyOutcome:
        """Open a new interval for a full snapshot, or patch the open revision."""
        open_revisions = await self._repo.find_open(story_id)
        if len(open_revisions) > 1:
            logger.error(
                "Story %s has %d open revisions, history is inconsistent",
                story_id,
                len(open_revisions),
            )
            raise ConsistencyError(
                f"Story {story_id} has {len(open_revisions)} open revisions, expected at most one"
            )
        latest = open_revisions[0] if open_revisions else None

        match observation:
            case FullSnapshot():
                return await self._open_interval(story_id, observation, latest)
            case PartialUpdate():
                return await self._patch_fields(story_id, observation, latest)
            case _:
                raise TypeError(f"Unsupported observation type {type(observation).__name__}")

    async def apply_payload(
        self, story_id: str, payload: Mapping[str, Any], *, observed_at: datetime
    ) -> ApplyOutcome:
        """Classify a raw payload by tracked-field presence and apply it."""
        observation = classify_observation(payload, self._tracked, observed_at=observed_at)
        return await self.apply_observation(story_id, observation)

    async def _open_interval(
        self, story_id: str, snapshot: FullSnapshot, latest: Revision | None
    ) -> ApplyOutcome:
        if latest is not None and snapshot.entered < latest.entered:
            logger.warning(
                "Dropping stale snapshot for story %s: entered %s precedes open revision %s",
                story_id,
                snapshot.entered.isoformat(),
                latest.entered.isoformat(),
            )
            return ApplyOutcome.STALE

        revision = Revision(
            story_id=story_id, entered=snapshot.entered, fields=dict(snapshot.fields)
        )
        await self._index(revision)

        if latest is None:
            logger.warning(
                "Could not find previous revision for story %s when applying an update. "
                "An initial revision should usually be present.",
                story_id,
            )
            return ApplyOutcome.OPENED_WITHOUT_PREVIOUS

        latest.close(revision.entered)
        doc = latest.to_document()
        await self._update(
            latest, {"exited": doc["exited"], "duration_days": doc["duration_days"]}
        )
        return ApplyOutcome.OPENED

    async def _patch_fields(
        self, story_id: str, update: PartialUpdate, latest: Revision | None
    ) -> ApplyOutcome:
        if latest is None:
            logger.error(
                "No open revision for story %s, dropping field-only update of %s",
                story_id,
                sorted(update.fields),
            )
            return ApplyOutcome.DROPPED

        latest.fields = {**latest.fields, **strip_temporal(update.fields)}
        await self._update(latest, {"fields": latest.to_document()["fields"]})
        return ApplyOutcome.PATCHED

    async def _index(self, revision: Revision) -> None:
        try:
            await self._repo.index(revision)
        except CosmosHttpResponseError as exc:
            logger.error(
                "Failed to insert revision of story %s entered at %s: %s",
                revision.story_id,
                revision.entered.isoformat(),
                exc.message,
            )
            raise DocumentStoreError(
                f"Failed to insert revision of story {revision.story_id}"
            ) from exc

    async def _update(self, revision: Revision, partial: dict[str, Any]) -> None:
        try:
            await self._repo.update(revision, partial)
        except CosmosHttpResponseError as exc:
            logger.error(
                "Failed to update revision %s of story %s: %s",
                revision.id,
                revision.story_id,
                exc.message,
            )
            raise DocumentStoreError(
                f"Failed to update revision {revision.id} of story {revision.story_id}"
            ) from exc
