"""Revision synchronization engine."""

from story_history.sync.engine import ApplyOutcome, RevisionSyncEngine

__all__ = ["ApplyOutcome", "RevisionSyncEngine"]
