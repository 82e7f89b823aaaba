"""Revision document model: one validity interval of a story's state."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, computed_field, field_validator

from story_history.models.base import DocumentBase

_SECONDS_PER_DAY = 60 * 60 * 24

# Keys a field-only patch must never carry into ``fields``.
TEMPORAL_KEYS = frozenset({"entered", "exited", "Entered", "Exited"})


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def interval_days(entered: datetime, exited: datetime | None) -> float | None:
    """Length of ``entered .. exited`` in days, or ``None`` while open."""
    if exited is None:
        return None
    return (exited - entered).total_seconds() / _SECONDS_PER_DAY


def strip_temporal(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if k not in TEMPORAL_KEYS}


class Revision(DocumentBase):
    """A story's state during ``entered .. exited``; open while ``exited`` is unset."""

    story_id: str
    entered: datetime
    exited: datetime | None = None
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("entered", "exited")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_days(self) -> float | None:
        return interval_days(self.entered, self.exited)

    @property
    def is_open(self) -> bool:
        return self.exited is None

    def close(self, exited: datetime) -> None:
        """End this revision's interval at ``exited``."""
        exited = ensure_utc(exited)
        if exited < self.entered:
            raise ValueError(
                f"Revision of story {self.story_id} cannot exit at {exited.isoformat()} "
                f"before it entered at {self.entered.isoformat()}"
            )
        self.exited = exited

    def to_document(self) -> dict[str, Any]:
        """Serialize for the store; interval keys are absent while the revision is open."""
        doc = self.model_dump(mode="json")
        if doc.get("id") is None:
            doc.pop("id", None)
        if self.exited is None:
            doc.pop("exited", None)
            doc.pop("duration_days", None)
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Revision:
        # duration_days is derived, never read back
        data = {k: v for k, v in doc.items() if k != "duration_days" and not k.startswith("_")}
        return cls.model_validate(data)
