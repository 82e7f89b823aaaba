"""Pre-flight checks that the store and the remote service are reachable."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

if TYPE_CHECKING:
    from story_history.config import Settings

logger = logging.getLogger(__name__)


async def check_dependencies(settings: Settings) -> bool:
    """Verify the Cosmos endpoint and the tracking service respond. Return False if not."""
    failures: list[str] = []
    async with httpx.AsyncClient(timeout=3) as client:
        cosmos_url = settings.cosmos.endpoint
        if not cosmos_url:
            failures.append("COSMOS_ENDPOINT is not set, add it to .env")
        elif not cosmos_url.startswith("https://"):
            try:
                await client.get(f"{cosmos_url.rstrip('/')}/")
            except httpx.ConnectError:
                parsed = urlparse(cosmos_url)
                failures.append(f"Cosmos DB emulator is not running at {parsed.netloc}")

        if not settings.remote.api_key:
            failures.append("RALLY_API_KEY is not set, add it to .env")
        if not settings.remote.workspace_id:
            failures.append("RALLY_WORKSPACE_ID is not set, add it to .env")

        try:
            await client.head(settings.remote.base_url)
        except httpx.TransportError:
            parsed = urlparse(settings.remote.base_url)
            failures.append(f"Tracking service is not reachable at {parsed.netloc}")

    if failures:
        for failure in failures:
            logger.error(failure)
        return False
    return True
