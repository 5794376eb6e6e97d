"""SQS queue gateway used by the worker (receive/delete) and the publisher (send)."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class QueueMessage:
    """A received message: opaque body plus the handle needed to delete it."""

    message_id: str
    body: str
    receipt_handle: str


class MessageQueue:
    """Async gateway over one SQS queue."""

    def __init__(self, sqs: Any, queue_url: str):
        self._sqs = sqs
        self.queue_url = queue_url

    @property
    def configured(self) -> bool:
        return bool(self.queue_url)

    async def receive(
        self,
        *,
        max_messages: int = 10,
        wait_seconds: int = 20,
        visibility_timeout: int = 300,
    ) -> list[QueueMessage]:
        """Long-poll for up to `max_messages` messages."""
        result = await self._sqs.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=max_messages,
            WaitTimeSeconds=wait_seconds,
            VisibilityTimeout=visibility_timeout,
        )
        return [
            QueueMessage(
                message_id=m.get("MessageId", ""),
                body=m.get("Body") or "",
                receipt_handle=m["ReceiptHandle"],
            )
            for m in result.get("Messages", [])
        ]

    async def delete(self, receipt_handle: str) -> None:
        await self._sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)

    async def send(self, body: str) -> str:
        """Send a raw message body. Returns the SQS MessageId."""
        result = await self._sqs.send_message(QueueUrl=self.queue_url, MessageBody=body)
        return result.get("MessageId", "")
