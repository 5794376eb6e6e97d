"""Admin endpoints for operations staff.

These endpoints are intended for manual recovery and testing.
In production, consider adding authentication (API key or admin token).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from gamecatalog.container import ServiceContainer
from gamecatalog.schemas.admin import CounterSweepResponse, WorkerBatchResponse

router = APIRouter()
logger = logging.getLogger("uvicorn.error")


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=503, detail="Services are not initialized")
    return container


@router.post("/counters/{game_id}/reconcile", response_model=CounterSweepResponse)
async def reconcile_counters(
    game_id: str,
    container: ServiceContainer = Depends(get_container),
) -> CounterSweepResponse:
    """Recount a game's ratings and overwrite its like/dislike counters.

    Returns `skipped=true` when another sweep holds the game's lock or the
    game does not exist.
    """
    try:
        result = await container.reconciler.sweep_game(game_id)
    except Exception as e:
        logger.exception(f"Counter sweep failed for game {game_id}")
        raise HTTPException(status_code=500, detail=f"Counter sweep failed: {e}") from e

    return CounterSweepResponse(
        game_id=result.game_id,
        skipped=result.skipped,
        likes=result.likes,
        dislikes=result.dislikes,
        previous_likes=result.previous_likes,
        previous_dislikes=result.previous_dislikes,
        drifted=result.drifted,
    )


@router.post("/worker/poll", response_model=WorkerBatchResponse)
async def poll_worker(container: ServiceContainer = Depends(get_container)) -> WorkerBatchResponse:
    """Receive and process one batch of queue messages now."""
    result = await container.worker.process_one_batch()
    logger.info(
        f"Manual poll: received={result.received} deleted={result.deleted} failed={result.failed}"
    )
    return WorkerBatchResponse(
        received=result.received,
        deleted=result.deleted,
        failed=result.failed,
        poll_failed=result.poll_failed,
    )
