"""Typed accessors for the work-item tracking service (WSAPI and Lookback API)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from story_history.errors import MalformedResponseError
from story_history.fetch import FetchRequest

if TYPE_CHECKING:
    from story_history.config import RemoteConfig
    from story_history.fetch import ResilientFetcher

logger = logging.getLogger(__name__)

RECORDS_PAGE_SIZE = 200
HISTORY_PAGE_SIZE = 100
_MAX_PROJECT_DEPTH = 32


@dataclass(frozen=True)
class Page:
    """One page of results plus the total across all pages."""

    results: list[dict[str, Any]] = field(default_factory=list)
    total_count: int = 0


def create_http_client(config: RemoteConfig) -> httpx.AsyncClient:
    """Build the shared HTTP client; default headers and timeout are fixed here."""
    return httpx.AsyncClient(headers=config.headers, timeout=config.timeout_s)


def _page_from(payload: dict[str, Any], *, source: str) -> Page:
    results = payload.get("Results")
    total = payload.get("TotalResultCount")
    if not isinstance(results, list) or not isinstance(total, int):
        raise MalformedResponseError(f"{source} response is missing Results/TotalResultCount")
    return Page(results=results, total_count=total)


class RemoteServiceClient:
    """Read stories, their snapshot history and enrichment data."""

    def __init__(self, fetcher: ResilientFetcher, config: RemoteConfig) -> None:
        self._fetcher = fetcher
        self._config = config

    def _wsapi(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _query(self, path: str, params: dict[str, Any]) -> Page:
        payload = await self._fetcher.fetch(FetchRequest("GET", self._wsapi(path), params=params))
        query_result = payload.get("QueryResult")
        if not isinstance(query_result, dict):
            raise MalformedResponseError(f"{path} response is missing QueryResult")
        return _page_from(query_result, source=path)

    async def list_records(self, start: int, page_size: int = RECORDS_PAGE_SIZE) -> Page:
        """List stories, ``start`` being 1-based as WSAPI expects."""
        if page_size > RECORDS_PAGE_SIZE:
            raise ValueError(f"page_size may not exceed {RECORDS_PAGE_SIZE}")
        return await self._query(
            "hierarchicalrequirement",
            {
                "workspace": f"/workspace/{self._config.workspace_id}",
                "start": start,
                "pagesize": page_size,
                "fetch": "true",
                "order": "ObjectID",
            },
        )

    async def count_records(self) -> int:
        page = await self.list_records(1, 1)
        return page.total_count

    async def list_revision_history(
        self, record_id: int | str, workspace_id: int | str, start: int = 0
    ) -> Page:
        """Fetch one page of a story's snapshots, oldest first."""
        url = (
            f"{self._config.lookback_url.rstrip('/')}"
            f"/workspace/{workspace_id}/artifact/snapshot/query.js"
        )
        request = FetchRequest(
            "GET",
            url,
            params={
                "find": json.dumps({"ObjectID": int(record_id)}, separators=(",", ":")),
                "start": start,
                "pagesize": HISTORY_PAGE_SIZE,
                "fields": "true",
                "sort": json.dumps({"_ValidFrom": 1}, separators=(",", ":")),
                "hydrate": json.dumps(
                    ["ScheduleState", "Project", "Owner"], separators=(",", ":")
                ),
            },
        )
        payload = await self._fetcher.fetch(request)
        return _page_from(payload, source="snapshot query")

    async def get_tags(self, record_id: int | str) -> list[str]:
        page = await self._query(
            f"hierarchicalrequirement/{record_id}/Tags", {"fetch": "Name", "pagesize": 200}
        )
        return [tag.get("Name") or tag.get("_refObjectName", "") for tag in page.results]

    async def get_discussions(self, record_id: int | str) -> list[dict[str, Any]]:
        page = await self._query(
            f"hierarchicalrequirement/{record_id}/Discussion",
            {"fetch": "CreationDate", "pagesize": 200},
        )
        return page.results

    async def get_project(self, project_uuid: str) -> dict[str, Any]:
        payload = await self._fetcher.fetch(
            FetchRequest("GET", self._wsapi(f"project/{project_uuid}"))
        )
        project = payload.get("Project")
        if not isinstance(project, dict):
            raise MalformedResponseError(f"project/{project_uuid} response is missing Project")
        return project

    async def get_project_hierarchy(
        self, project_uuid: str, *, max_depth: int = _MAX_PROJECT_DEPTH
    ) -> list[str]:
        """Return project names from ``project_uuid`` up to the root.

        Stops at ``max_depth`` or at a project already visited.
        """
        names: list[str] = []
        seen: set[str] = set()
        current: str | None = project_uuid
        while current and len(names) < max_depth:
            if current in seen:
                logger.warning("Project hierarchy cycle at %s, stopping", current)
                break
            seen.add(current)
            project = await self.get_project(current)
            names.append(project.get("_refObjectName") or project.get("Name", ""))
            parent = project.get("Parent")
            current = parent.get("_refObjectUUID") if isinstance(parent, dict) else None
        else:
            if current:
                logger.warning(
                    "Project hierarchy for %s exceeds %d levels, truncating",
                    project_uuid,
                    max_depth,
                )
        return names
