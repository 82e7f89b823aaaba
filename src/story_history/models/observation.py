"""Observations: a full snapshot opens a new interval, a partial update patches the open one."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from story_history.fields import TrackedFieldSet
from story_history.models.revision import ensure_utc, strip_temporal


@dataclass(frozen=True)
class FullSnapshot:
    """A state-worthy change beginning at ``entered``."""

    entered: datetime
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entered", ensure_utc(self.entered))
        object.__setattr__(self, "fields", strip_temporal(dict(self.fields)))


@dataclass(frozen=True)
class PartialUpdate:
    """A field-only change; interval boundaries are never touched."""

    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", strip_temporal(dict(self.fields)))


Observation = FullSnapshot | PartialUpdate


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def classify_observation(
    payload: Mapping[str, Any],
    tracked: TrackedFieldSet,
    *,
    observed_at: datetime,
) -> Observation:
    """Classify a raw payload by the presence of tracked field names.

    Only key presence counts: a tracked key carrying the same value as the
    open revision still yields a :class:`FullSnapshot`.
    """
    if tracked.any_in(payload.keys()):
        raw_entered = payload.get("entered", payload.get("Entered"))
        entered = _parse_timestamp(raw_entered) if raw_entered is not None else observed_at
        return FullSnapshot(entered=entered, fields=dict(payload))
    return PartialUpdate(fields=dict(payload))
