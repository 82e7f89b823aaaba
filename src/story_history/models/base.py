"""Shared base for documents stored in Cosmos DB."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class DocumentBase(BaseModel):
    """Fields common to every stored document.

    ``id`` stays ``None`` until the store assigns one on create.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
