"""Repository modules for each Cosmos DB container."""

from story_history.database.repositories.revisions import FilterResult, RevisionRepository

__all__ = [
    "FilterResult",
    "RevisionRepository",
]
