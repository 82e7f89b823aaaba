"""Async Cosmos DB client initialization."""

from __future__ import annotations

import logging
from typing import Any

from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, DatabaseProxy
from azure.cosmos.aio import CosmosClient as AzureCosmosClient

from story_history.config import CosmosConfig

logger = logging.getLogger(__name__)

REVISIONS_PARTITION_KEY = "/story_id"


class CosmosClient:
    """Manages the async Cosmos DB client and database reference."""

    def __init__(self, config: CosmosConfig) -> None:
        self._config = config
        self._client: AzureCosmosClient | None = None
        self._database: DatabaseProxy | None = None

    async def initialize(self) -> None:
        """Create the client and obtain a database reference."""
        self._client = AzureCosmosClient(self._config.endpoint, credential=self._config.key)
        self._database = await self._client.create_database_if_not_exists(self._config.database)
        logger.info(
            "Cosmos client initialized — endpoint=%s database=%s",
            self._config.endpoint,
            self._config.database,
        )

    async def close(self) -> None:
        """Close the underlying client."""
        if self._client:
            await self._client.close()
            self._client = None
            self._database = None

    @property
    def database(self) -> DatabaseProxy:
        if self._database is None:
            raise RuntimeError("CosmosClient not initialized, call initialize() first")
        return self._database

    async def ensure_revisions_container(self, indexing_policy: dict[str, Any]) -> ContainerProxy:
        """Create the revisions container (partitioned by story) if it does not exist."""
        container = await self.database.create_container_if_not_exists(
            id=self._config.container,
            partition_key=PartitionKey(path=REVISIONS_PARTITION_KEY),
            indexing_policy=indexing_policy,
        )
        logger.info(
            "Revisions container ready — container=%s indexed_paths=%d",
            self._config.container,
            len(indexing_policy.get("includedPaths", [])),
        )
        return container
