"""Snapshot formatting: raw service rows to story ids and full snapshots."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from story_history.errors import MalformedResponseError
from story_history.fields import coerce_fields
from story_history.models.observation import FullSnapshot

if TYPE_CHECKING:
    from collections.abc import Iterable

    from story_history.fields import FieldConfig

logger = logging.getLogger(__name__)

VALID_FROM = "_ValidFrom"


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _reference_name(value: Any) -> Any:
    """Collapse hydrated references (``{"_refObjectName": ...}``) to their name."""
    if isinstance(value, dict) and "_refObjectName" in value:
        return value["_refObjectName"]
    if isinstance(value, dict) and "Name" in value:
        return value["Name"]
    return value


class SnapshotFormatter:
    """Shape records and snapshots into the stored field layout.

    Every snapshot starts from the nulled schema template so that fields the
    service omits are stored explicitly as ``None``.
    """

    def __init__(self, field_config: FieldConfig) -> None:
        self._config = field_config

    def story_id(self, record: dict[str, Any]) -> str:
        object_id = record.get("ObjectID")
        if object_id is None:
            raise MalformedResponseError("Record has no ObjectID")
        return str(object_id)

    def format_fields(self, raw: dict[str, Any]) -> dict[str, Any]:
        values = {k: _reference_name(v) for k, v in raw.items() if not k.startswith("_")}
        return {
            **self._config.nulled_template(),
            **coerce_fields(values, self._config.mappings),
        }

    def format_history(
        self, snapshots: Iterable[dict[str, Any]], record: dict[str, Any]
    ) -> list[FullSnapshot]:
        """Turn Lookback snapshots into full snapshots, keeping their order."""
        formatted: list[FullSnapshot] = []
        for snapshot in snapshots:
            valid_from = snapshot.get(VALID_FROM)
            if not valid_from:
                logger.warning(
                    "Skipping snapshot without %s for story %s",
                    VALID_FROM,
                    record.get("ObjectID"),
                )
                continue
            try:
                entered = _parse_timestamp(str(valid_from))
            except ValueError:
                logger.warning(
                    "Skipping snapshot with unparseable %s %r for story %s",
                    VALID_FROM,
                    valid_from,
                    record.get("ObjectID"),
                )
                continue
            formatted.append(FullSnapshot(entered=entered, fields=self.format_fields(snapshot)))
        return formatted
