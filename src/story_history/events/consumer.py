"""Service Bus consumer: applies story update events one at a time."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import secrets
from typing import TYPE_CHECKING

from pydantic import ValidationError

from story_history.errors import FatalError
from story_history.events.contracts import STORY_UPDATED, EventEnvelope, StoryObservationEvent

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from story_history.config import ServiceBusConfig

logger = logging.getLogger(__name__)
_BASE_RECONNECT_DELAY_SECONDS = 1.0
_MAX_RECONNECT_DELAY_SECONDS = 30.0
_JITTER_SCALE = 1000
_MAX_DEDUPE_IDS = 10_000


def _compute_reconnect_delay_seconds(attempt: int) -> float:
    """Return bounded exponential backoff delay with jitter."""
    base_delay = _BASE_RECONNECT_DELAY_SECONDS * (2 ** min(attempt, 10))
    jitter_ratio = secrets.randbelow(_JITTER_SCALE) / _JITTER_SCALE
    return min(
        _MAX_RECONNECT_DELAY_SECONDS,
        base_delay + (base_delay * jitter_ratio),
    )


class ObservationConsumer:
    """Receive story update events and hand each to ``on_observation``.

    Messages are handled strictly one after another so that a story never has
    two writers. A :class:`FatalError` from the handler stops the consumer and
    is re-raised from :attr:`task` for the supervisor.
    """

    def __init__(
        self,
        config: ServiceBusConfig,
        on_observation: Callable[[StoryObservationEvent], Awaitable[object]],
    ) -> None:
        self._config = config
        self._on_observation = on_observation
        self._task: asyncio.Task | None = None
        self._running = False
        self._disabled = not config.connection_string
        self._processed_message_ids: set[str] = set()
        if self._disabled:
            logger.warning(
                "AZURE_SERVICEBUS_CONNECTION_STRING is not set — "
                "story updates will not be consumed"
            )

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    async def start(self) -> None:
        """Start the background consumer task."""
        if self._disabled:
            return
        self._running = True
        self._task = asyncio.create_task(self._consume())
        logger.info(
            "Story update consumer started — topic=%s subscription=%s",
            self._config.topic_name,
            self._config.subscription_name,
        )

    async def stop(self) -> None:
        """Stop the background consumer task."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Story update consumer stopped")

    def _remember_message_id(self, message_id: str) -> None:
        """Remember handled message IDs for at-least-once delivery deduplication."""
        self._processed_message_ids.add(message_id)
        if len(self._processed_message_ids) > _MAX_DEDUPE_IDS:
            self._processed_message_ids.clear()

    async def _handle_event(self, envelope: EventEnvelope, *, message_id: str | None) -> bool:
        """Handle a decoded event envelope. Returns True when the event is consumed."""
        if envelope.event != STORY_UPDATED:
            return False
        if not isinstance(envelope.data, dict):
            logger.warning("Ignoring invalid story update payload (non-object data)")
            return True

        try:
            event = StoryObservationEvent.model_validate(envelope.data)
        except ValidationError:
            logger.warning("Ignoring invalid story update payload", exc_info=True)
            return True

        dedupe_id = event.message_id or message_id
        if dedupe_id and dedupe_id in self._processed_message_ids:
            logger.info("Ignoring duplicate story update id=%s", dedupe_id)
            return True

        await self._on_observation(event)
        if dedupe_id:
            self._remember_message_id(dedupe_id)
        return True

    async def _consume(self) -> None:
        """Consume with reconnect backoff until stopped or a fatal error occurs."""
        attempt = 0
        while self._running:
            try:
                await self._consume_once()
                attempt = 0
            except (asyncio.CancelledError, FatalError):
                raise
            except Exception:  # noqa: BLE001
                if not self._running:
                    break
                delay = _compute_reconnect_delay_seconds(attempt)
                attempt += 1
                logger.warning(
                    "Story update consumer error; retrying in %.1fs",
                    delay,
                    exc_info=True,
                )
                await asyncio.sleep(delay)

    async def _consume_once(self) -> None:
        """Run a single Service Bus receive session."""
        from azure.servicebus.aio import ServiceBusClient  # noqa: PLC0415

        client = ServiceBusClient.from_connection_string(self._config.connection_string)
        async with client:
            receiver = client.get_subscription_receiver(
                topic_name=self._config.topic_name,
                subscription_name=self._config.subscription_name,
            )
            async with receiver:
                while self._running:
                    messages = await receiver.receive_messages(
                        max_message_count=10,
                        max_wait_time=5,
                    )
                    for message in messages:
                        try:
                            envelope = EventEnvelope.from_message_body(str(message))
                            handled = await self._handle_event(
                                envelope,
                                message_id=str(message.message_id)
                                if message.message_id
                                else None,
                            )
                            await receiver.complete_message(message)
                            if not handled:
                                logger.debug("Ignored event %s", envelope.event)
                        except (asyncio.CancelledError, FatalError):
                            raise
                        except json.JSONDecodeError:
                            logger.warning("Invalid Service Bus message payload, abandoning")
                            await receiver.abandon_message(message)
                        except Exception:  # noqa: BLE001
                            logger.warning(
                                "Failed to apply story update, abandoning message",
                                exc_info=True,
                            )
                            await receiver.abandon_message(message)
