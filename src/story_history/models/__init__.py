"""Data models for revisions and incoming observations."""

from story_history.models.observation import (
    FullSnapshot,
    Observation,
    PartialUpdate,
    classify_observation,
)
from story_history.models.revision import Revision

__all__ = [
    "FullSnapshot",
    "Observation",
    "PartialUpdate",
    "Revision",
    "classify_observation",
]
