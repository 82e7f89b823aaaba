"""Remote tracking service client."""

from story_history.remote.client import (
    HISTORY_PAGE_SIZE,
    RECORDS_PAGE_SIZE,
    Page,
    RemoteServiceClient,
    create_http_client,
)

__all__ = [
    "HISTORY_PAGE_SIZE",
    "RECORDS_PAGE_SIZE",
    "Page",
    "RemoteServiceClient",
    "create_http_client",
]
