"""Shared fixtures: field configuration and an in-memory revision store."""

from __future__ import annotations

import copy
import itertools
import json
from typing import TYPE_CHECKING, Any

import pytest

from story_history.fields import FieldConfig, TrackedFieldSet
from story_history.models.revision import Revision

if TYPE_CHECKING:
    from pathlib import Path


class InMemoryRevisionRepository:
    """Stores revision documents the way the container would, keyed by generated id."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self._ids = itertools.count(1)
        self.index_calls = 0
        self.update_calls = 0

    async def index(self, revision: Revision) -> str:
        self.index_calls += 1
        store_id = f"rev-{next(self._ids)}"
        doc = revision.to_document()
        doc["id"] = store_id
        self.documents[store_id] = doc
        revision.id = store_id
        return store_id

    async def update(self, revision: Revision, partial: dict[str, Any]) -> None:
        self.update_calls += 1
        self.documents[revision.id].update(copy.deepcopy(partial))

    async def find_open(self, story_id: str) -> list[Revision]:
        return [
            Revision.from_document(doc)
            for doc in self.documents.values()
            if doc["story_id"] == story_id and "exited" not in doc
        ]

    def revisions(self, story_id: str) -> list[Revision]:
        found = [
            Revision.from_document(doc)
            for doc in self.documents.values()
            if doc["story_id"] == story_id
        ]
        return sorted(found, key=lambda r: r.entered)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self.documents)


@pytest.fixture
def store() -> InMemoryRevisionRepository:
    return InMemoryRevisionRepository()


@pytest.fixture
def tracked() -> TrackedFieldSet:
    return TrackedFieldSet.of(["ScheduleState", "Owner"])


@pytest.fixture
def field_config(tracked: TrackedFieldSet) -> FieldConfig:
    return FieldConfig(
        tracked=tracked,
        mappings={
            "Name": "string",
            "ScheduleState": "string",
            "Owner": "string",
            "PlanEstimate": "float",
            "Blocked": "boolean",
            "Tags": "object",
        },
        schema={
            "Name": {},
            "ScheduleState": {},
            "Owner": {},
            "PlanEstimate": {},
            "Blocked": {},
            "Tags": {},
        },
    )


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """A field config directory with valid tracked/mappings/schema files."""
    (tmp_path / "tracked.json").write_text(json.dumps(["ScheduleState"]), encoding="utf-8")
    (tmp_path / "mappings.json").write_text(
        json.dumps({"ScheduleState": "string", "PlanEstimate": "float"}), encoding="utf-8"
    )
    (tmp_path / "schema.json").write_text(
        json.dumps({"ScheduleState": {}, "PlanEstimate": {}, "Name": {}}), encoding="utf-8"
    )
    return tmp_path
