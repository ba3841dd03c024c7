"""
MediaVault API application.

Builds the FastAPI app around one explicitly constructed JobScheduler. The
scheduler, media library and config live on ``app.state`` and reach routes
through the dependencies in ``mediavault.api.dependencies``.

Usage
-----
    app = create_app()                       # config from ./config.yaml
    app = create_app(config, scheduler=s)    # tests inject their own

    run_server(host="127.0.0.1", port=8000)
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mediavault import __version__
from mediavault.api.routes.health import router as health_router
from mediavault.api.routes.images import router as images_router
from mediavault.api.routes.upload import router as upload_router
from mediavault.core.config import Config
from mediavault.core.config_loaders import load_config
from mediavault.core.exceptions import (
    AnalysisError,
    ConfigurationError,
    ImageNotFoundError,
    JobQueueError,
    MediaError,
    MediaVaultError,
)
from mediavault.core.jobs import JobScheduler, create_job_scheduler
from mediavault.core.logging import get_logger
from mediavault.media.handlers import build_handlers
from mediavault.media.library import MediaLibrary

logger = get_logger(__name__)

# Most specific first
_STATUS_BY_ERROR = (
    (ImageNotFoundError, status.HTTP_404_NOT_FOUND),
    (MediaError, status.HTTP_400_BAD_REQUEST),
    (JobQueueError, status.HTTP_400_BAD_REQUEST),
    (AnalysisError, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _status_for(exc: MediaVaultError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def mediavault_error_handler(
    request: Request, exc: MediaVaultError
) -> JSONResponse:
    """Render MediaVaultError as {error, code}."""
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(
            "Request failed", path=request.url.path, code=exc.error_code, error=exc
        )
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.user_message, "code": exc.error_code},
    )


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Route-level HTTPException and unmatched paths share the {error, code} body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "code": f"MV-HTTP-{exc.status_code}"},
        headers=exc.headers,
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are a 400, like the rest of the client errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid request",
            "code": "MV-REQ-000",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def create_app(
    config: Optional[Config] = None,
    scheduler: Optional[JobScheduler] = None,
    library: Optional[MediaLibrary] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        config: Application config. Loaded from the working directory if omitted.
        scheduler: Job scheduler. Built from config with the media handlers
            if omitted.
        library: Media library. Built from config if omitted.

    Returns:
        Configured FastAPI app.
    """
    config = config or load_config()
    library = library or MediaLibrary.from_config(config)
    if scheduler is None:
        scheduler = create_job_scheduler(config, build_handlers(library, config))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Jobs enqueued before the loop existed start now
        scheduler.start()
        logger.info(
            "MediaVault API started",
            version=__version__,
            concurrency=scheduler.concurrency,
        )
        yield
        grace = config.queue.shutdown_grace_sec
        if not await scheduler.wait_until_idle(timeout=grace):
            counts = scheduler.get_queue_status()
            logger.warning(
                "Shutting down with unfinished jobs",
                pending=counts.pending,
                processing=counts.processing,
            )

    app = FastAPI(title="MediaVault API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.library = library
    app.state.scheduler = scheduler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(MediaVaultError, mediavault_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health_router)
    app.include_router(images_router)
    app.include_router(upload_router)
    return app


def run_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    config: Optional[Config] = None,
) -> None:
    """Run the API with uvicorn. Blocks until the server stops."""
    config = config or load_config()
    host = host or config.api.host
    port = port or config.api.port

    if reload:
        # Reload needs an import string; the factory reloads config itself
        uvicorn.run(
            "mediavault.api.main:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
        )
        return

    uvicorn.run(create_app(config), host=host, port=port)
