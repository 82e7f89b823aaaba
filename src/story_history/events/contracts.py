"""Typed contracts for story update events."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

STORY_UPDATED = "story-updated"


class EventEnvelope(BaseModel):
    """Canonical event envelope used on Service Bus."""

    event: str
    data: dict[str, Any] | str

    @classmethod
    def from_message_body(cls, body: str) -> EventEnvelope:
        """Parse an event envelope from a JSON message body.

        Supports payloads where ``data`` was stringified JSON.
        """
        payload = json.loads(body)
        envelope = cls.model_validate(payload)
        if isinstance(envelope.data, str):
            try:
                decoded = json.loads(envelope.data)
            except json.JSONDecodeError:
                return envelope
            if isinstance(decoded, dict):
                envelope.data = decoded
        return envelope


class StoryObservationEvent(BaseModel):
    """A single change to one story, as delivered by the update hook."""

    story_id: str
    fields: dict[str, Any] = Field(default_factory=dict)
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    message_id: str | None = None

    @field_validator("story_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value
