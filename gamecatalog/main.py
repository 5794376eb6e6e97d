"""FastAPI application entry point.

Games Catalogue Core - async event processing and counter consistency.
"""

import asyncio
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gamecatalog.container import open_container
from gamecatalog.routes import api_router
from gamecatalog.schemas.common import ErrorResponse
from gamecatalog.settings import get_settings

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Opens the service container and, when enabled, runs the queue worker as a
    background task for the lifetime of the app.
    """
    settings = get_settings()

    async with open_container(settings) as container:
        app.state.container = container

        stop = asyncio.Event()
        worker_task: asyncio.Task | None = None
        if settings.worker_enabled:
            worker_task = asyncio.create_task(container.worker.run(stop))
            logger.info("Queue worker started in background")

        yield

        # Shutdown
        if worker_task is not None:
            stop.set()
            await worker_task


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Games catalogue event processing and consistency core",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handler for structured error format
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        body = ErrorResponse.build(
            code="INTERNAL_ERROR",
            message=str(exc) if settings.debug else "Internal server error",
        )
        return JSONResponse(status_code=500, content=body.model_dump())

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, bool]:
        return {"ok": True}

    app.include_router(api_router)

    return app


# Application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "gamecatalog.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
