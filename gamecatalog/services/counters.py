"""Rating counter reconciliation: DynamoDB ratings -> games.likes / games.dislikes.

The rating records in DynamoDB are authoritative; the counters on the `games`
row are a denormalized copy kept in step on every rating mutation:

    read prior rating -> write new rating -> apply counter delta

The three steps are not atomic and are not retried when two writers race on
the same (user, game). Drift that slips through is corrected by
`CounterReconciler.sweep_game`, which recounts the ratings via the reverse
index and overwrites both counters.

Delta policy (prior -> new):
    absent  -> LIKE     +1 /  0
    absent  -> DISLIKE   0 / +1
    LIKE    -> DISLIKE  -1 / +1
    DISLIKE -> LIKE     +1 / -1
    X       -> X         0 /  0
    X       -> removed  -1 on X's counter
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging

from sqlalchemy import ColumnElement, case, select, update

from gamecatalog.models import Game
from gamecatalog.services.audit import AuditLog, CrudAction
from gamecatalog.services.ratings import RatingStore, RatingType
from gamecatalog.stores.postgres import Database
from gamecatalog.stores.redis import RedisStore

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class CounterDelta:
    likes: int = 0
    dislikes: int = 0

    @property
    def is_noop(self) -> bool:
        return self.likes == 0 and self.dislikes == 0


@dataclass(frozen=True)
class CounterSnapshot:
    game_id: str
    likes: int
    dislikes: int


@dataclass(frozen=True)
class RatingOutcome:
    """Counters after a rating mutation plus the caller's current rating."""

    likes: int
    dislikes: int
    user_rating: RatingType | None


@dataclass(frozen=True)
class SweepResult:
    game_id: str
    skipped: bool
    likes: int | None = None
    dislikes: int | None = None
    previous_likes: int | None = None
    previous_dislikes: int | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def drifted(self) -> bool:
        if self.skipped:
            return False
        return (self.likes, self.dislikes) != (self.previous_likes, self.previous_dislikes)


def _counter_for(rating: RatingType | None) -> CounterDelta:
    if rating is RatingType.LIKE:
        return CounterDelta(likes=1)
    if rating is RatingType.DISLIKE:
        return CounterDelta(dislikes=1)
    return CounterDelta()


def compute_counter_delta(prior: RatingType | None, new: RatingType | None) -> CounterDelta:
    """Counter movement for a rating going from `prior` to `new` (None = absent/removed)."""
    if prior == new:
        return CounterDelta()
    add = _counter_for(new)
    sub = _counter_for(prior)
    return CounterDelta(likes=add.likes - sub.likes, dislikes=add.dislikes - sub.dislikes)


def _clamped(column: ColumnElement[int], delta: int) -> ColumnElement[int]:
    expr = column + delta
    return case((expr < 0, 0), else_=expr)


class SqlGameCounters:
    """Counter columns on the relational `games` table."""

    def __init__(self, database: Database):
        self._db = database

    async def apply_delta(self, game_id: str, delta: CounterDelta) -> None:
        """Apply a delta in a single UPDATE, clamping both counters at zero."""
        if delta.is_noop:
            return
        stmt = (
            update(Game)
            .where(Game.id == game_id)
            .values(
                likes=_clamped(Game.likes, delta.likes),
                dislikes=_clamped(Game.dislikes, delta.dislikes),
            )
        )
        async with self._db.session() as session:
            result = await session.execute(stmt)
        if result.rowcount == 0:
            logger.warning(f"Counter update skipped: game {game_id} not found")

    async def get_counts(self, game_id: str) -> CounterSnapshot | None:
        async with self._db.session() as session:
            res = await session.execute(select(Game.likes, Game.dislikes).where(Game.id == game_id))
            row = res.one_or_none()
        if row is None:
            return None
        return CounterSnapshot(game_id=game_id, likes=row.likes, dislikes=row.dislikes)

    async def overwrite(self, game_id: str, likes: int, dislikes: int) -> bool:
        """Set both counters. Returns False if the game does not exist."""
        async with self._db.session() as session:
            result = await session.execute(
                update(Game).where(Game.id == game_id).values(likes=max(likes, 0), dislikes=max(dislikes, 0))
            )
        return result.rowcount > 0

    async def list_game_ids(self) -> list[str]:
        async with self._db.session() as session:
            res = await session.execute(select(Game.id).order_by(Game.created_at.asc()))
            return list(res.scalars().all())


class CounterReconciler:
    """Keeps games.likes/dislikes consistent with the rating records."""

    def __init__(
        self,
        ratings: RatingStore,
        counters: SqlGameCounters,
        locks: RedisStore | None = None,
        lock_ttl: int = 60,
        audit: AuditLog | None = None,
    ):
        self._ratings = ratings
        self._counters = counters
        self._locks = locks
        self._lock_ttl = lock_ttl
        self._audit = audit

    async def rate(self, user_id: str, game_id: str, value: RatingType | str) -> RatingOutcome:
        """Like or dislike a game on behalf of a user."""
        value = RatingType(value)
        existing = await self._ratings.get_rating(user_id, game_id)
        prior = existing.type if existing else None

        await self._ratings.set_rating(user_id, game_id, value)
        await self._counters.apply_delta(game_id, compute_counter_delta(prior, value))
        await self._audit_rating(CrudAction.UPDATE, user_id, game_id, value.value)

        return await self._outcome(game_id, value)

    async def remove(self, user_id: str, game_id: str) -> RatingOutcome:
        """Remove a user's rating. Counters only move if a rating existed."""
        existing = await self._ratings.get_rating(user_id, game_id)
        if existing is not None:
            await self._ratings.delete_rating(user_id, game_id)
            await self._counters.apply_delta(game_id, compute_counter_delta(existing.type, None))
            await self._audit_rating(CrudAction.DELETE, user_id, game_id, existing.type.value)

        return await self._outcome(game_id, None)

    async def _audit_rating(self, action: CrudAction, user_id: str, game_id: str, rating: str) -> None:
        if self._audit is None:
            return
        await self._audit.log(action, {"resource": "rating", "action": rating, "userId": user_id, "gameId": game_id})

    async def _outcome(self, game_id: str, user_rating: RatingType | None) -> RatingOutcome:
        snapshot = await self._counters.get_counts(game_id)
        return RatingOutcome(
            likes=snapshot.likes if snapshot else 0,
            dislikes=snapshot.dislikes if snapshot else 0,
            user_rating=user_rating,
        )

    async def sweep_game(self, game_id: str) -> SweepResult:
        """Recount a game's ratings and overwrite its counters.

        Guarded by a per-game Redis lock; without Redis the sweep runs unlocked.
        """
        lock_key = f"counters:{game_id}"
        locked = False
        if self._locks is not None:
            try:
                if not await self._locks.acquire_lock(lock_key, ttl=self._lock_ttl):
                    logger.info(f"[sweep] game {game_id} is locked by another sweep, skipping")
                    return SweepResult(game_id=game_id, skipped=True)
                locked = True
            except Exception as e:
                logger.warning(f"[sweep] Redis lock unavailable, sweeping {game_id} unlocked: {e}")

        try:
            before = await self._counters.get_counts(game_id)
            if before is None:
                logger.warning(f"[sweep] game {game_id} not found in relational store")
                return SweepResult(game_id=game_id, skipped=True)

            likes, dislikes = await self._ratings.count_ratings_for_game(game_id)
            await self._counters.overwrite(game_id, likes, dislikes)

            result = SweepResult(
                game_id=game_id,
                skipped=False,
                likes=likes,
                dislikes=dislikes,
                previous_likes=before.likes,
                previous_dislikes=before.dislikes,
            )
            if result.drifted:
                logger.warning(
                    f"[sweep] counter drift corrected for game {game_id}: "
                    f"likes {before.likes}->{likes} dislikes {before.dislikes}->{dislikes}"
                )
            return result
        finally:
            if locked:
                try:
                    await self._locks.release_lock(lock_key)
                except Exception as e:
                    logger.warning(f"[sweep] failed to release lock for {game_id}: {e}")

    async def sweep_games(self, game_ids: Iterable[str]) -> list[SweepResult]:
        """Sweep games one by one. A failing game is reported and does not stop the run."""
        results: list[SweepResult] = []
        for game_id in game_ids:
            try:
                results.append(await self.sweep_game(game_id))
            except Exception as e:
                logger.exception(f"[sweep] game {game_id} failed")
                results.append(SweepResult(game_id=game_id, skipped=True, error=str(e)))
        return results
