"""Cosmos DB access."""

from story_history.database.client import CosmosClient

__all__ = ["CosmosClient"]
