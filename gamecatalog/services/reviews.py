"""Review store: per-game reviews in a DynamoDB single table.

Access patterns:
- Reviews of a game, newest first:    PK=GAME#<game>   SK=REVIEW#<ordering key>
- Reviews by a user, newest first:    GSI1PK=USER#<user>  GSI1SK=REVIEW#<ordering key>

Ordering key: "<13-digit epoch millis>#<reviewId>". The millis part never
repeats within a process, so per-game range scans are stable and pagination
cursors (DynamoDB LastEvaluatedKey) keep their position under concurrent inserts.

Comment length/emptiness is validated by the caller before reaching this store.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
import time
from uuid import uuid4

from gamecatalog.stores.dynamo import GSI1, DynamoTable, Item, delete_in_batches, iter_query_pages

logger = logging.getLogger("uvicorn.error")

DEFAULT_PAGE_LIMIT = 20
DELETE_PAGE_SIZE = 1000


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class OrderingClock:
    """Epoch-millis source that is strictly increasing within the process."""

    def __init__(self, now: Callable[[], int] = _epoch_millis):
        self._now = now
        self._last = 0

    def tick(self) -> int:
        ts = max(self._now(), self._last + 1)
        self._last = ts
        return ts


@dataclass(frozen=True)
class Review:
    review_id: str
    game_id: str
    user_id: str
    author_name: str
    body: str
    created_at: str
    ordering_key: str

    @property
    def sort_key(self) -> str:
        return f"REVIEW#{self.ordering_key}"

    def to_item(self) -> Item:
        return {
            "PK": f"GAME#{self.game_id}",
            "SK": self.sort_key,
            "GSI1PK": f"USER#{self.user_id}",
            "GSI1SK": self.sort_key,
            "reviewId": self.review_id,
            "gameId": self.game_id,
            "userId": self.user_id,
            "username": self.author_name,
            "comment": self.body,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_item(cls, item: Item) -> Review:
        return cls(
            review_id=str(item["reviewId"]),
            game_id=str(item["gameId"]),
            user_id=str(item["userId"]),
            author_name=str(item.get("username", "")),
            body=str(item.get("comment", "")),
            created_at=str(item.get("createdAt", "")),
            ordering_key=str(item["SK"]).removeprefix("REVIEW#"),
        )


@dataclass
class ReviewPage:
    items: list[Review] = field(default_factory=list)
    cursor: Item | None = None

    @property
    def has_more(self) -> bool:
        return self.cursor is not None


def encode_cursor(last_key: Item | None) -> str | None:
    """Turn a LastEvaluatedKey into an opaque URL-safe token.

    ReviewStore pages with raw keys; the token form is for HTTP handlers that
    hand cursors to clients.
    """
    if not last_key:
        return None
    raw = json.dumps(last_key, separators=(",", ":"), sort_keys=True).encode()
    return base64.urlsafe_b64encode(raw).decode()


def decode_cursor(token: str | None) -> Item | None:
    """Inverse of encode_cursor. Raises ValueError for tokens we did not issue."""
    if not token:
        return None
    decoded = json.loads(base64.urlsafe_b64decode(token.encode()))
    if not isinstance(decoded, dict):
        raise ValueError("Malformed review cursor")
    return decoded


def _check_limit(limit: int) -> None:
    # DynamoDB rejects Limit < 1 with a ValidationException
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")


class ReviewStore:
    """Review access patterns over the reviews table."""

    def __init__(self, table: DynamoTable, clock: OrderingClock | None = None):
        self._table = table
        self._clock = clock or OrderingClock()

    async def create_review(self, game_id: str, user_id: str, author_name: str, body: str) -> Review:
        ts = self._clock.tick()
        review_id = f"{ts}-{uuid4().hex[:9]}"
        review = Review(
            review_id=review_id,
            game_id=game_id,
            user_id=user_id,
            author_name=author_name,
            body=body,
            created_at=datetime.fromtimestamp(ts / 1000, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            ordering_key=f"{ts:013d}#{review_id}",
        )
        await self._table.put_item(review.to_item())
        return review

    async def list_reviews_for_game(
        self,
        game_id: str,
        limit: int = DEFAULT_PAGE_LIMIT,
        cursor: Item | None = None,
    ) -> ReviewPage:
        """One page of a game's reviews, newest first.

        Args:
            game_id: Game identifier.
            limit: Max reviews in the page.
            cursor: `ReviewPage.cursor` of the previous page, passed back unchanged.
        """
        _check_limit(limit)
        page = await self._table.query(
            partition_attr="PK",
            partition_value=f"GAME#{game_id}",
            limit=limit,
            forward=False,
            start_key=cursor,
        )
        return ReviewPage(
            items=[Review.from_item(item) for item in page.items],
            cursor=page.last_key,
        )

    async def list_reviews_for_user(self, user_id: str, limit: int = DEFAULT_PAGE_LIMIT) -> list[Review]:
        """A user's most recent reviews (single page) via the reverse index."""
        _check_limit(limit)
        page = await self._table.query(
            partition_attr="GSI1PK",
            partition_value=f"USER#{user_id}",
            index_name=GSI1,
            limit=limit,
            forward=False,
        )
        return [Review.from_item(item) for item in page.items]

    async def delete_review(self, game_id: str, sort_key: str) -> None:
        await self._table.delete_item({"PK": f"GAME#{game_id}", "SK": sort_key})

    async def delete_all_reviews_for_game(self, game_id: str) -> int:
        """Delete every review of a game in batches of 25. Returns the count deleted."""
        deleted = 0
        async for items in iter_query_pages(
            self._table,
            partition_attr="PK",
            partition_value=f"GAME#{game_id}",
            page_size=DELETE_PAGE_SIZE,
        ):
            keys = [{"PK": item["PK"], "SK": item["SK"]} for item in items]
            deleted += await delete_in_batches(self._table, keys)

        logger.info(f"Deleted {deleted} reviews for game {game_id}")
        return deleted
