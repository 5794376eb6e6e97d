"""Pydantic schemas for API responses and event payloads."""

from gamecatalog.schemas.admin import CounterSweepResponse, WorkerBatchResponse
from gamecatalog.schemas.common import ErrorDetail, ErrorResponse
from gamecatalog.schemas.events import EventMessage, EventType

__all__ = [
    "CounterSweepResponse",
    "ErrorDetail",
    "ErrorResponse",
    "EventMessage",
    "EventType",
    "WorkerBatchResponse",
]
