"""Audit trail in the CRUD log table.

Two kinds of append-only items:
- PROCESS items, one per handled queue message (`record_processed`)
- CRUD items for user-facing mutations such as rating changes (`log`)

Items expire through the table's TTL attribute; nothing here deletes them.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Literal
from uuid import uuid4

from gamecatalog.stores.dynamo import DynamoTable

logger = logging.getLogger("uvicorn.error")

SECONDS_PER_DAY = 24 * 60 * 60

AuditLevel = Literal["INFO", "WARN", "ERROR"]


class CrudAction(str, Enum):
    UPLOAD = "UPLOAD"
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditLog:
    def __init__(self, table: DynamoTable, ttl_days: int = 30, crud_enabled: bool = True):
        self._table = table
        self._ttl_seconds = ttl_days * SECONDS_PER_DAY
        # Outside production CRUD entries only go to the application log
        self._crud_enabled = crud_enabled

    def _base_item(self, action: str) -> tuple[str, dict[str, Any]]:
        now = datetime.now(timezone.utc)
        operation_id = f"{int(now.timestamp() * 1000)}-{uuid4().hex[:9]}"
        return operation_id, {
            "operation_id": operation_id,
            "action": action,
            "timestamp": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "TTL": int(now.timestamp()) + self._ttl_seconds,
        }

    async def record_processed(
        self,
        *,
        event_type: str,
        key: str | None,
        processed: bool,
        message_id: str = "",
    ) -> str:
        """Write the audit item for one message. Returns its operation id."""
        operation_id, item = self._base_item("PROCESS")
        item.update(eventType=event_type, processed=processed, messageId=message_id)
        if key:
            item["s3Key"] = key
        await self._table.put_item(item)
        return operation_id

    async def log(
        self,
        action: CrudAction | str,
        data: dict[str, Any] | None = None,
        level: AuditLevel = "INFO",
    ) -> str | None:
        """Record a CRUD action.

        A failed write is logged and None is returned, so callers can audit
        after their mutation has already been committed. Unknown actions raise
        ValueError.
        """
        action = CrudAction(action)
        if not self._crud_enabled:
            logger.info(f"[audit] bypass {action.value}: {data or {}}")
            return None

        operation_id, item = self._base_item(action.value)
        item["level"] = level
        if data:
            item["data"] = data
        try:
            await self._table.put_item(item)
        except Exception:
            logger.exception(f"[audit] failed to record {action.value}")
            return None
        return operation_id
