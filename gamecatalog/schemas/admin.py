"""Schemas for the admin endpoints (/v1/admin)."""

from pydantic import BaseModel, Field


class CounterSweepResponse(BaseModel):
    """Result of recounting one game's ratings into its counters."""

    game_id: str = Field(alias="gameId")
    skipped: bool
    likes: int | None = None
    dislikes: int | None = None
    previous_likes: int | None = Field(alias="previousLikes", default=None)
    previous_dislikes: int | None = Field(alias="previousDislikes", default=None)
    drifted: bool = False

    model_config = {"populate_by_name": True}


class WorkerBatchResponse(BaseModel):
    """Result of one poll/dispatch cycle."""

    received: int = Field(ge=0)
    deleted: int = Field(ge=0)
    failed: int = Field(ge=0)
    poll_failed: bool = Field(alias="pollFailed", default=False)

    model_config = {"populate_by_name": True}
