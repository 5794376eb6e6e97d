"""Wire schema for catalogue events.

Published form:
    {"eventType": "FILE_UPLOADED", "data": {...}, "timestamp": "2024-01-01T00:00:00.000Z"}

Older producers put `s3Key` / `fileName` at the top level instead of inside
`data`; both are accepted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EventType(str, Enum):
    """Known event types."""

    FILE_UPLOADED = "FILE_UPLOADED"
    GAME_CREATED = "GAME_CREATED"
    GAME_DELETED = "GAME_DELETED"
    # Synthesized from storage notifications
    FILE_DELETED = "FILE_DELETED"
    STORAGE_TEST_EVENT = "STORAGE_TEST_EVENT"
    # Sentinel for envelopes that could not be unwrapped
    PARSE_ERROR = "PARSE_ERROR"


class EventMessage(BaseModel):
    """A single event as carried in a queue/topic message body."""

    event_type: str = Field(alias="eventType", min_length=1)
    data: dict[str, Any] | None = None
    timestamp: str | None = None
    s3_key: str | None = Field(alias="s3Key", default=None)
    file_name: str | None = Field(alias="fileName", default=None)

    model_config = {"populate_by_name": True, "extra": "ignore"}
