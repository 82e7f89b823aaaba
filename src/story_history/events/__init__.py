"""Story update events."""

from story_history.events.consumer import ObservationConsumer
from story_history.events.contracts import STORY_UPDATED, EventEnvelope, StoryObservationEvent

__all__ = ["STORY_UPDATED", "EventEnvelope", "ObservationConsumer", "StoryObservationEvent"]
