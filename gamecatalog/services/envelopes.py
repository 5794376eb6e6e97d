"""Queue message unwrapping.

A message body reaching the worker can have one of three shapes:

1. Raw event             {"eventType": "...", "data": {...}}
2. Pub/sub envelope      {"Type": "Notification", "Message": "<JSON string>", ...}
                         (SNS -> SQS fan-out; the inner string is unwrapped again)
3. Storage notification  {"Records": [{"eventSource": "aws:s3", "s3": {"object": {"key": ...}}}]}
                         (S3 -> SQS, possibly via SNS); the event is synthesized
                         from the first record, key URL-decoded

Shapes are tried in that order. A failure while trying one shape never stops
the next one from being tried; when nothing matches the result is an
UnrecognizedEnvelope, which `unwrap_message` turns into a PARSE_ERROR event.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import json
import logging
from typing import Any
from urllib.parse import unquote_plus

from gamecatalog.schemas.events import EventMessage, EventType

logger = logging.getLogger("uvicorn.error")

# SNS -> SNS -> SQS chains deeper than this are not expected
MAX_PUBSUB_DEPTH = 2
# Amount of an unparseable body kept for logging/audit
BODY_PREVIEW_CHARS = 500

# json.loads raises RecursionError on deeply nested arrays/objects
_SHAPE_ERRORS = (ValueError, TypeError, KeyError, AttributeError, IndexError, RecursionError)


class EnvelopeShape(str, Enum):
    RAW = "raw"
    PUBSUB = "pubsub"
    STORAGE = "storage"


@dataclass(frozen=True)
class ParsedEvent:
    """Event in the worker's internal shape."""

    event_type: str
    data: dict[str, Any] = field(default_factory=dict)
    key: str | None = None
    file_name: str | None = None
    timestamp: str | None = None
    shape: EnvelopeShape = EnvelopeShape.RAW


@dataclass(frozen=True)
class UnrecognizedEnvelope:
    reason: str
    body_preview: str


def parse_envelope(body: str) -> ParsedEvent | UnrecognizedEnvelope:
    """Parse a message body into a ParsedEvent, or describe why it could not be."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError, RecursionError) as e:
        return UnrecognizedEnvelope(reason=f"body is not JSON: {e}", body_preview=_preview(body))
    return _parse_payload(payload, depth=0, body=body)


def unwrap_message(body: str) -> ParsedEvent:
    """Total version of parse_envelope: unrecognized bodies become PARSE_ERROR events."""
    result = parse_envelope(body)
    if isinstance(result, ParsedEvent):
        return result
    logger.warning(f"Unrecognized message envelope: {result.reason}")
    return ParsedEvent(
        event_type=EventType.PARSE_ERROR.value,
        data={"reason": result.reason, "body": result.body_preview},
    )


def _preview(body: Any) -> str:
    return str(body)[:BODY_PREVIEW_CHARS]


def _parse_payload(payload: Any, *, depth: int, body: str) -> ParsedEvent | UnrecognizedEnvelope:
    if not isinstance(payload, dict):
        return UnrecognizedEnvelope(reason="body is not a JSON object", body_preview=_preview(body))

    for name, attempt in (
        ("raw", _try_raw_event),
        ("pubsub", _try_pubsub_envelope),
        ("storage", _try_storage_notification),
    ):
        try:
            parsed = attempt(payload, depth=depth, body=body)
        except _SHAPE_ERRORS as e:
            logger.debug(f"Envelope shape {name} rejected message: {e}")
            continue
        if parsed is not None:
            return parsed

    return UnrecognizedEnvelope(reason="no known envelope shape matched", body_preview=_preview(body))


def _try_raw_event(payload: dict[str, Any], *, depth: int, body: str) -> ParsedEvent | None:
    if "eventType" not in payload:
        return None
    msg = EventMessage.model_validate(payload)
    data = dict(msg.data or {})

    key = msg.s3_key or data.get("s3Key") or data.get("key")
    file_name = msg.file_name or data.get("fileName")
    return ParsedEvent(
        event_type=msg.event_type,
        data=data,
        key=str(key) if key else None,
        file_name=str(file_name) if file_name else None,
        timestamp=msg.timestamp,
        shape=EnvelopeShape.RAW,
    )


def _try_pubsub_envelope(payload: dict[str, Any], *, depth: int, body: str) -> ParsedEvent | None:
    message = payload.get("Message")
    if not isinstance(message, str) or depth >= MAX_PUBSUB_DEPTH:
        return None

    inner = _parse_payload(json.loads(message), depth=depth + 1, body=message)
    if isinstance(inner, UnrecognizedEnvelope):
        return None
    if inner.shape is EnvelopeShape.RAW:
        return replace(inner, shape=EnvelopeShape.PUBSUB)
    return inner


def _try_storage_notification(payload: dict[str, Any], *, depth: int, body: str) -> ParsedEvent | None:
    # S3 sends a one-off test message when a notification target is configured.
    if payload.get("Event") == "s3:TestEvent":
        return ParsedEvent(
            event_type=EventType.STORAGE_TEST_EVENT.value,
            data={"bucket": payload.get("Bucket")},
            timestamp=payload.get("Time"),
            shape=EnvelopeShape.STORAGE,
        )

    records = payload.get("Records")
    if not isinstance(records, list) or not records:
        return None

    record = records[0]
    s3 = record["s3"]
    key = unquote_plus(s3["object"]["key"])
    file_name = key.rsplit("/", 1)[-1]
    event_name = str(record.get("eventName", ""))

    if event_name.startswith("ObjectRemoved"):
        event_type = EventType.FILE_DELETED.value
    else:
        event_type = EventType.FILE_UPLOADED.value

    return ParsedEvent(
        event_type=event_type,
        data={
            "s3Key": key,
            "fileName": file_name,
            "bucket": (s3.get("bucket") or {}).get("name"),
            "size": s3["object"].get("size"),
            "storageEvent": event_name,
        },
        key=key,
        file_name=file_name,
        timestamp=record.get("eventTime"),
        shape=EnvelopeShape.STORAGE,
    )
