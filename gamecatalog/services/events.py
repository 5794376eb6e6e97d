"""Event publisher: announce catalogue facts to SNS (or straight to SQS).

Only production publishes. Everywhere else events are logged and dropped so
local runs and tests never touch AWS. Publishing is fire-and-forget for the
caller: transport errors are logged, not raised.
"""

import logging
from typing import Any

from gamecatalog.schemas.events import EventMessage, EventType, utc_now_iso
from gamecatalog.settings import Settings
from gamecatalog.stores.queue import MessageQueue

logger = logging.getLogger("uvicorn.error")


class EventPublisher:
    """Serializes events and hands them to the topic or the queue."""

    def __init__(self, settings: Settings, sns: Any | None = None, queue: MessageQueue | None = None):
        self._production = settings.is_production
        self._environment = settings.environment
        self._topic_arn = settings.sns_topic_arn
        self._sns = sns
        self._queue = queue

    async def publish(self, event_type: EventType | str, data: dict[str, Any]) -> bool:
        """Publish one event.

        Returns:
            True if the event was handed to SNS/SQS, False if bypassed or failed.
        """
        event_type = event_type.value if isinstance(event_type, EventType) else str(event_type)

        if not self._production:
            logger.info(f"[events] bypass ({self._environment}) {event_type}: {data}")
            return False

        body = EventMessage(
            event_type=event_type,
            data=data,
            timestamp=utc_now_iso(),
        ).model_dump_json(by_alias=True, exclude_none=True)

        try:
            if self._topic_arn and self._sns is not None:
                await self._sns.publish(
                    TopicArn=self._topic_arn,
                    Message=body,
                    Subject=f"Game Event: {event_type}",
                )
                return True
            if self._queue is not None and self._queue.configured:
                await self._queue.send(body)
                return True
        except Exception:
            logger.exception(f"[events] failed to publish {event_type}")
            return False

        logger.warning(f"[events] no SNS topic or SQS queue configured, dropping {event_type}")
        return False

    async def publish_file_uploaded(self, key: str, file_name: str) -> bool:
        return await self.publish(EventType.FILE_UPLOADED, {"s3Key": key, "fileName": file_name})

    async def publish_game_created(self, game_id: str, title: str, developer_id: str) -> bool:
        return await self.publish(
            EventType.GAME_CREATED,
            {"gameId": game_id, "title": title, "developerId": developer_id},
        )

    async def publish_game_deleted(self, game_id: str) -> bool:
        return await self.publish(EventType.GAME_DELETED, {"gameId": game_id})
