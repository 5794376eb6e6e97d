"""Rating store: one LIKE/DISLIKE per (user, game) in a DynamoDB single table.

Access patterns:
- Point get/put/delete by (user, game):  PK=USER#<user>  SK=GAME#<game>
- All ratings of a game (GSI1):          GSI1PK=GAME#<game>  GSI1SK=USER#<user>

Writes are upserts on the primary key, so a user can never hold two ratings
for the same game. Counter bookkeeping is the caller's job (see counters.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

from gamecatalog.schemas.events import utc_now_iso
from gamecatalog.stores.dynamo import GSI1, DynamoTable, Item, delete_in_batches, iter_query_pages

logger = logging.getLogger("uvicorn.error")

# Items fetched per reverse-index page during cascade deletes
DELETE_PAGE_SIZE = 1000


class RatingType(str, Enum):
    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


def rating_key(user_id: str, game_id: str) -> Item:
    return {"PK": f"USER#{user_id}", "SK": f"GAME#{game_id}"}


@dataclass(frozen=True)
class Rating:
    user_id: str
    game_id: str
    type: RatingType
    created_at: str

    def to_item(self) -> Item:
        return {
            **rating_key(self.user_id, self.game_id),
            "GSI1PK": f"GAME#{self.game_id}",
            "GSI1SK": f"USER#{self.user_id}",
            "type": self.type.value,
            "userId": self.user_id,
            "gameId": self.game_id,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_item(cls, item: Item) -> Rating:
        return cls(
            user_id=str(item["userId"]),
            game_id=str(item["gameId"]),
            type=RatingType(item["type"]),
            created_at=str(item.get("createdAt", "")),
        )


class RatingStore:
    """Rating access patterns over the ratings table."""

    def __init__(self, table: DynamoTable):
        self._table = table

    async def set_rating(self, user_id: str, game_id: str, value: RatingType | str) -> Rating:
        """Upsert the (user, game) rating and return the stored record."""
        rating = Rating(
            user_id=user_id,
            game_id=game_id,
            type=RatingType(value),
            created_at=utc_now_iso(),
        )
        await self._table.put_item(rating.to_item())
        return rating

    async def get_rating(self, user_id: str, game_id: str) -> Rating | None:
        """Point lookup. None means "no rating", not an error."""
        item = await self._table.get_item(rating_key(user_id, game_id))
        if item is None:
            return None
        return Rating.from_item(item)

    async def delete_rating(self, user_id: str, game_id: str) -> None:
        await self._table.delete_item(rating_key(user_id, game_id))

    async def list_ratings_for_game(self, game_id: str) -> list[Rating]:
        """All ratings of a game via the reverse index, across every page."""
        ratings: list[Rating] = []
        async for items in iter_query_pages(
            self._table,
            partition_attr="GSI1PK",
            partition_value=f"GAME#{game_id}",
            index_name=GSI1,
        ):
            ratings.extend(Rating.from_item(item) for item in items)
        return ratings

    async def count_ratings_for_game(self, game_id: str) -> tuple[int, int]:
        """Return (likes, dislikes) counted from the rating records."""
        ratings = await self.list_ratings_for_game(game_id)
        likes = sum(1 for r in ratings if r.type is RatingType.LIKE)
        return likes, len(ratings) - likes

    async def delete_all_ratings_for_game(self, game_id: str) -> int:
        """Delete every rating of a game in batches of 25. Returns the count deleted."""
        deleted = 0
        async for items in iter_query_pages(
            self._table,
            partition_attr="GSI1PK",
            partition_value=f"GAME#{game_id}",
            index_name=GSI1,
            page_size=DELETE_PAGE_SIZE,
        ):
            keys = [{"PK": item["PK"], "SK": item["SK"]} for item in items]
            deleted += await delete_in_batches(self._table, keys)

        logger.info(f"Deleted {deleted} ratings for game {game_id}")
        return deleted
