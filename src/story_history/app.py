"""Process entry points: the bulk history pull and the story update worker."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING

from azure.monitor.opentelemetry import configure_azure_monitor

from story_history.config import Settings, load_settings
from story_history.database.client import CosmosClient
from story_history.database.repositories.revisions import RevisionRepository
from story_history.errors import FatalError
from story_history.events.consumer import ObservationConsumer
from story_history.fetch.fetcher import ResilientFetcher
from story_history.fields import FieldConfig, build_indexing_policy, load_field_config
from story_history.health import check_dependencies
from story_history.logging import configure_logging
from story_history.pipeline.formatting import SnapshotFormatter
from story_history.pipeline.pull import PullOrchestrator
from story_history.remote.client import RemoteServiceClient, create_http_client
from story_history.sync.engine import RevisionSyncEngine

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from story_history.events.contracts import StoryObservationEvent

logger = logging.getLogger(__name__)


async def supervise(work: Awaitable[int]) -> int:
    """Await ``work`` and translate a fatal error into its exit code."""
    try:
        return await work
    except FatalError as exc:
        logger.critical("Fatal %s error, shutting down: %s", exc.category, exc)
        return exc.exit_code


def _bootstrap(service_name: str) -> Settings:
    settings = load_settings()
    configure_logging(settings.app.log_level, log_file=settings.app.log_file or None)
    if settings.monitor.connection_string:
        configure_azure_monitor(connection_string=settings.monitor.connection_string)
        logger.info("Azure Monitor OpenTelemetry configured for %s", service_name)
    return settings


async def _init_store(settings: Settings, field_config: FieldConfig) -> CosmosClient:
    cosmos = CosmosClient(settings.cosmos)
    await cosmos.initialize()
    await cosmos.ensure_revisions_container(build_indexing_policy(field_config.mappings))
    return cosmos


async def run_pull() -> int:
    """Import the full revision history of every story."""
    settings = _bootstrap("story-history-pull")
    logger.info("History pull starting")

    if settings.app.is_development and not await check_dependencies(settings):
        return 1

    field_config = load_field_config(settings.app.field_config_dir)
    cosmos = await _init_store(settings, field_config)
    try:
        repository = RevisionRepository(cosmos.database, settings.cosmos.container)
        engine = RevisionSyncEngine(repository, field_config.tracked)
        async with create_http_client(settings.remote) as http:
            remote = RemoteServiceClient(ResilientFetcher(http, settings.fetch), settings.remote)
            orchestrator = PullOrchestrator(
                remote,
                engine,
                SnapshotFormatter(field_config),
                workspace_id=settings.remote.workspace_id,
            )
            summary = await orchestrator.pull_all()
    finally:
        await cosmos.close()

    if summary.failed:
        logger.warning("%d stories failed and can be retried by a later pull", summary.failed)
    return 0


async def run_worker() -> int:
    """Apply story update events until terminated."""
    settings = _bootstrap("story-history-worker")
    logger.info("Worker starting")

    if settings.app.is_development and not await check_dependencies(settings):
        return 1

    field_config = load_field_config(settings.app.field_config_dir)
    cosmos = await _init_store(settings, field_config)
    repository = RevisionRepository(cosmos.database, settings.cosmos.container)
    engine = RevisionSyncEngine(repository, field_config.tracked)

    async def apply(event: StoryObservationEvent) -> None:
        outcome = await engine.apply_payload(
            event.story_id, event.fields, observed_at=event.observed_at
        )
        logger.info("Applied story update — story=%s outcome=%s", event.story_id, outcome)

    consumer = ObservationConsumer(settings.servicebus, on_observation=apply)
    await consumer.start()
    if consumer.task is None:
        logger.error("Cannot start worker without a Service Bus connection")
        await cosmos.close()
        return 1

    logger.info("Worker running")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    stop_task = asyncio.create_task(stop_event.wait())
    try:
        done, _ = await asyncio.wait(
            {stop_task, consumer.task}, return_when=asyncio.FIRST_COMPLETED
        )
        if consumer.task in done:
            consumer.task.result()
    finally:
        logger.info("Worker shutting down")
        stop_task.cancel()
        await consumer.stop()
        await cosmos.close()
        logger.info("Worker shutdown complete")
    return 0


def _exit(code: int) -> None:
    logging.shutdown()
    sys.exit(code)


def main() -> None:
    """Entry point for the history pull."""
    _exit(asyncio.run(supervise(run_pull())))


def worker_main() -> None:
    """Entry point for the story update worker."""
    _exit(asyncio.run(supervise(run_worker())))


if __name__ == "__main__":
    main()
