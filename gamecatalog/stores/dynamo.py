"""DynamoDB single-table gateway.

Wraps an aioboto3 Table resource with the handful of operations the rating and
review access patterns need: point put/get/delete, key-condition queries on the
table or a secondary index, and batched deletes.

Every table follows the same key layout:
- Primary key: PK (partition) + SK (sort)
- GSI1: GSI1PK (partition) + GSI1SK (sort), projecting all attributes
"""

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
import logging
from typing import Any

from boto3.dynamodb.conditions import Key

logger = logging.getLogger("uvicorn.error")

# BatchWriteItem accepts at most 25 put/delete requests per call.
MAX_BATCH_ITEMS = 25

GSI1 = "GSI1"

Item = dict[str, Any]


@dataclass
class QueryPage:
    """One page of query results plus the store's continuation key."""

    items: list[Item]
    last_key: Item | None = None


class DynamoTable:
    """Async gateway over one DynamoDB table."""

    def __init__(self, table: Any, name: str):
        self._table = table
        self.name = name

    async def put_item(self, item: Item) -> None:
        await self._table.put_item(Item=item)

    async def get_item(self, key: Item) -> Item | None:
        result = await self._table.get_item(Key=key)
        return result.get("Item")

    async def delete_item(self, key: Item) -> None:
        # DeleteItem on a missing key succeeds, which keeps deletes idempotent.
        await self._table.delete_item(Key=key)

    async def query(
        self,
        *,
        partition_attr: str,
        partition_value: str,
        index_name: str | None = None,
        limit: int | None = None,
        forward: bool = True,
        start_key: Item | None = None,
    ) -> QueryPage:
        """Run a single Query call (one page).

        Args:
            partition_attr: Partition key attribute of the table or index.
            partition_value: Value the partition key must equal.
            index_name: Secondary index to query, or None for the table.
            limit: Max items to evaluate for this page.
            forward: Ascending sort-key order when True, descending otherwise.
            start_key: ExclusiveStartKey from a previous page.

        Returns:
            QueryPage with items and LastEvaluatedKey (None when exhausted).
        """
        params: dict[str, Any] = {
            "KeyConditionExpression": Key(partition_attr).eq(partition_value),
            "ScanIndexForward": forward,
        }
        if index_name:
            params["IndexName"] = index_name
        if limit is not None:
            params["Limit"] = limit
        if start_key:
            params["ExclusiveStartKey"] = start_key

        result = await self._table.query(**params)
        return QueryPage(
            items=list(result.get("Items", [])),
            last_key=result.get("LastEvaluatedKey"),
        )

    async def batch_delete(self, keys: Sequence[Item]) -> None:
        """Delete up to MAX_BATCH_ITEMS keys in one BatchWriteItem request.

        The batch writer resends unprocessed items until the batch is drained.
        """
        if len(keys) > MAX_BATCH_ITEMS:
            raise ValueError(f"batch_delete accepts at most {MAX_BATCH_ITEMS} keys, got {len(keys)}")
        if not keys:
            return
        async with self._table.batch_writer() as batch:
            for key in keys:
                await batch.delete_item(Key=key)


async def iter_query_pages(
    table: DynamoTable,
    *,
    partition_attr: str,
    partition_value: str,
    index_name: str | None = None,
    page_size: int | None = None,
    forward: bool = True,
) -> AsyncIterator[list[Item]]:
    """Yield pages of a query, following LastEvaluatedKey until exhausted."""
    start_key: Item | None = None
    while True:
        page = await table.query(
            partition_attr=partition_attr,
            partition_value=partition_value,
            index_name=index_name,
            limit=page_size,
            forward=forward,
            start_key=start_key,
        )
        if page.items:
            yield page.items
        if not page.last_key:
            return
        start_key = page.last_key


async def delete_in_batches(table: DynamoTable, keys: Sequence[Item]) -> int:
    """Delete keys in MAX_BATCH_ITEMS-sized chunks. Returns the number deleted."""
    deleted = 0
    for i in range(0, len(keys), MAX_BATCH_ITEMS):
        chunk = keys[i : i + MAX_BATCH_ITEMS]
        await table.batch_delete(chunk)
        deleted += len(chunk)
    return deleted
