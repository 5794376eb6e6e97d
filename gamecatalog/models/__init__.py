"""SQLAlchemy ORM models.

Models represent database tables:
- games: catalogue games with denormalized like/dislike counters
"""

from gamecatalog.models.game import Game

__all__ = ["Game"]
