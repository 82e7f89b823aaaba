"""Generic repository over a single Cosmos DB container."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Generic, TypeVar, cast

from azure.cosmos.exceptions import CosmosResourceNotFoundError
from pydantic import BaseModel

if TYPE_CHECKING:
    from azure.cosmos.aio import DatabaseProxy

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """CRUD helpers shared by every container repository."""

    container_name: ClassVar[str]
    model_class: type[T]

    def __init__(self, database: DatabaseProxy, container_name: str | None = None) -> None:
        self._container = database.get_container_client(container_name or self.container_name)

    def to_body(self, item: T) -> dict[str, Any]:
        return item.model_dump(mode="json", exclude_none=True)

    def from_body(self, data: dict[str, Any]) -> T:
        return self.model_class.model_validate(data)

    async def create(self, item: T) -> dict[str, Any]:
        """Insert ``item``; the store generates an id when the body has none."""
        return cast(
            "dict[str, Any]",
            await self._container.create_item(
                body=self.to_body(item), enable_automatic_id_generation=True
            ),
        )

    async def get(self, item_id: str, partition_key: str) -> T | None:
        try:
            data = await self._container.read_item(item=item_id, partition_key=partition_key)
        except CosmosResourceNotFoundError:
            return None
        return self.from_body(cast("dict[str, Any]", data))

    async def patch(self, item_id: str, partition_key: str, values: dict[str, Any]) -> None:
        """Set only the given top-level keys on a stored item."""
        operations = [
            {"op": "set", "path": f"/{key}", "value": value} for key, value in values.items()
        ]
        await self._container.patch_item(
            item=item_id, partition_key=partition_key, patch_operations=operations
        )

    async def query(
        self,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        *,
        partition_key: str | None = None,
    ) -> list[T]:
        kwargs: dict[str, Any] = {"parameters": parameters or []}
        if partition_key is not None:
            kwargs["partition_key"] = partition_key
        return [
            self.from_body(cast("dict[str, Any]", item))
            async for item in self._container.query_items(query, **kwargs)
        ]
