"""Queue worker: drains catalogue events from SQS.

One iteration:
1. Long-poll up to `worker_max_messages` messages
2. For each message: unwrap -> dispatch by event type -> delete + audit
3. Sleep `worker_poll_interval_seconds`, unless asked to stop

A message whose handler fails is left in the queue; it becomes visible again
after the visibility timeout and is retried. Handlers are idempotent, so
at-least-once delivery is safe.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
import logging

from gamecatalog.schemas.events import EventType
from gamecatalog.services.audit import AuditLog
from gamecatalog.services.envelopes import ParsedEvent, unwrap_message
from gamecatalog.services.images import ImageResizer
from gamecatalog.services.ratings import RatingStore
from gamecatalog.services.reviews import ReviewStore
from gamecatalog.settings import Settings
from gamecatalog.stores.queue import MessageQueue, QueueMessage

logger = logging.getLogger("uvicorn.error")


class UnhandledEventError(RuntimeError):
    pass


class WorkerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    EMPTY = "empty"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


@dataclass
class BatchResult:
    """Outcome of one poll + dispatch round."""

    received: int = 0
    deleted: int = 0
    failed: int = 0
    poll_failed: bool = False


Handler = Callable[[ParsedEvent], Awaitable[bool]]


class QueueWorker:
    def __init__(
        self,
        queue: MessageQueue,
        settings: Settings,
        resizer: ImageResizer,
        ratings: RatingStore,
        reviews: ReviewStore,
        audit: AuditLog | None = None,
    ):
        self._queue = queue
        self._resizer = resizer
        self._ratings = ratings
        self._reviews = reviews
        self._audit = audit

        self.max_messages = settings.worker_max_messages
        self.wait_seconds = settings.worker_wait_seconds
        self.visibility_timeout = settings.worker_visibility_timeout
        self.poll_interval = settings.worker_poll_interval_seconds
        self.concurrent = settings.worker_concurrent_handlers

        self.state = WorkerState.IDLE
        self._handlers: dict[str, Handler] = {
            EventType.FILE_UPLOADED.value: self._handle_file_uploaded,
            EventType.GAME_CREATED.value: self._handle_game_created,
            EventType.GAME_DELETED.value: self._handle_game_deleted,
            EventType.PARSE_ERROR.value: self._handle_parse_error,
        }

    # =========================================================================
    # Loop
    # =========================================================================

    async def run(
        self,
        stop_event: asyncio.Event | None = None,
        max_iterations: int | None = None,
    ) -> None:
        """Poll until `stop_event` is set or `max_iterations` rounds are done.

        Stop is only checked between iterations; a batch in flight always
        finishes.
        """
        stop = stop_event or asyncio.Event()
        iterations = 0
        logger.info(f"[worker] started (queue={self._queue.queue_url or '<unset>'})")

        while not stop.is_set():
            try:
                await self.process_one_batch()
            except Exception:
                logger.exception("[worker] iteration failed, continuing")
                self.state = WorkerState.IDLE
            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

        self.state = WorkerState.STOPPED
        logger.info(f"[worker] stopped after {iterations} iterations")

    async def process_one_batch(self) -> BatchResult:
        """Receive one batch and dispatch every message in it."""
        result = BatchResult()

        if not self._queue.configured:
            logger.error("[worker] SQS_QUEUE_URL is not configured, nothing to poll")
            self.state = WorkerState.IDLE
            return result

        self.state = WorkerState.POLLING
        try:
            messages = await self._queue.receive(
                max_messages=self.max_messages,
                wait_seconds=self.wait_seconds,
                visibility_timeout=self.visibility_timeout,
            )
        except Exception:
            logger.exception("[worker] receive failed")
            result.poll_failed = True
            self.state = WorkerState.IDLE
            return result

        result.received = len(messages)
        if not messages:
            # Stays EMPTY until the next poll
            self.state = WorkerState.EMPTY
            return result

        self.state = WorkerState.DISPATCHING
        logger.info(f"[worker] received {len(messages)} messages")

        if self.concurrent:
            outcomes = await asyncio.gather(*(self.process_message(m) for m in messages))
        else:
            outcomes = [await self.process_message(m) for m in messages]

        result.deleted = sum(1 for ok in outcomes if ok)
        result.failed = len(outcomes) - result.deleted
        self.state = WorkerState.IDLE
        return result

    async def process_message(self, message: QueueMessage) -> bool:
        """Handle one message. Returns True if it was deleted from the queue."""
        event_type = "<unparsed>"
        try:
            event = unwrap_message(message.body)
            event_type = event.event_type
            processed = await self.dispatch(event)
            await self._queue.delete(message.receipt_handle)
        except Exception:
            logger.exception(
                f"[worker] message {message.message_id} ({event_type}) failed, leaving for redelivery"
            )
            return False

        if self._audit is not None:
            try:
                await self._audit.record_processed(
                    event_type=event.event_type,
                    key=event.key,
                    processed=processed,
                    message_id=message.message_id,
                )
            except Exception:
                logger.exception(f"[worker] audit write failed for message {message.message_id}")
        return True

    async def dispatch(self, event: ParsedEvent) -> bool:
        """Run the handler for an event.

        Returns:
            True if a handler did work, False if the event was acknowledged
            without action (unknown type, key outside the image prefixes).
        """
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.warning(f"[worker] unknown event type {event.event_type}, discarding")
            return False
        return await handler(event)

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _handle_file_uploaded(self, event: ParsedEvent) -> bool:
        key = event.key
        if not key:
            logger.warning("[worker] FILE_UPLOADED without an object key, discarding")
            return False
        if not self._resizer.handles(key):
            logger.info(f"[worker] {key} is not under an image prefix, skipping resize")
            return False
        await self._resizer.process(key)
        return True

    async def _handle_game_created(self, event: ParsedEvent) -> bool:
        logger.info(f"[worker] game created: {event.data}")
        return True

    async def _handle_game_deleted(self, event: ParsedEvent) -> bool:
        game_id = event.data.get("gameId")
        if not game_id:
            raise UnhandledEventError("GAME_DELETED event without gameId")

        ratings_deleted, reviews_deleted = await asyncio.gather(
            self._ratings.delete_all_ratings_for_game(str(game_id)),
            self._reviews.delete_all_reviews_for_game(str(game_id)),
        )
        logger.info(
            f"[worker] cleaned up game {game_id}: {ratings_deleted} ratings, {reviews_deleted} reviews"
        )
        return True

    async def _handle_parse_error(self, event: ParsedEvent) -> bool:
        raise UnhandledEventError(f"Cannot process message: {event.data.get('reason', 'unparseable body')}")
