"""Game model.

Only the columns this service touches are mapped: identity, title and the
denormalized like/dislike counters. The rest of the catalogue schema belongs
to the CRUD side of the backend.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from gamecatalog.stores.postgres import Base


def generate_game_id() -> str:
    """Generate unique game ID."""
    return str(uuid4())


class Game(Base):
    """Catalogue game row carrying the rating counters."""

    __tablename__ = "games"
    __table_args__ = (
        CheckConstraint("likes >= 0", name="ck_games_likes_non_negative"),
        CheckConstraint("dislikes >= 0", name="ck_games_dislikes_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_game_id)
    title: Mapped[str] = mapped_column(String(200))

    # Approximate count of LIKE / DISLIKE rating records for this game
    likes: Mapped[int] = mapped_column(default=0, server_default="0")
    dislikes: Mapped[int] = mapped_column(default=0, server_default="0")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Game {self.id} +{self.likes}/-{self.dislikes}>"
