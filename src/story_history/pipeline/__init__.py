"""Bulk pull pipeline."""

from story_history.pipeline.formatting import SnapshotFormatter
from story_history.pipeline.pull import PullOrchestrator, PullSummary

__all__ = ["PullOrchestrator", "PullSummary", "SnapshotFormatter"]
