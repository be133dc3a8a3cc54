"""FastAPI application for hookrelay."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hookrelay import __version__
from hookrelay.config import Settings
from hookrelay.exceptions import (
    AuthenticationError,
    ConfigurationError,
    HookRelayError,
    InvalidArgumentError,
    NotFoundError,
)
from hookrelay.logging import configure_logging, get_logger
from hookrelay.service import WebhookService

from .router import router, set_service

logger = get_logger(__name__)


def build_lifespan(
    settings: Settings,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build the lifespan handler owning the WebhookService.

    Configures logging, initializes storage and queue workers on startup,
    and closes them on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(level=settings.log_level, format=settings.log_format)
        logger.info(
            "Starting hookrelay API",
            log_level=settings.log_level,
            storage_backend=settings.storage_backend,
        )

        service = WebhookService.create(settings)
        await service.initialize()
        set_service(service)

        yield

        await service.close()
        set_service(None)
        logger.info("hookrelay API stopped")

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Args:
        settings: Optional settings. Uses environment if None.

    Returns:
        Configured FastAPI application.

    Example:
        ```python
        from hookrelay.api import create_app

        app = create_app()
        # Run with: uvicorn hookrelay.api:app --reload
        ```
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="hookrelay",
        description="Signed webhook delivery and verified webhook receipt.",
        version=__version__,
        lifespan=build_lifespan(settings),
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Register exception handlers
    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        """Handle authentication errors with 401 status."""
        logger.warning("Authentication failed", error=exc.message, path=str(request.url))
        return JSONResponse(status_code=401, content=exc.to_dict())

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(
        request: Request, exc: InvalidArgumentError
    ) -> JSONResponse:
        """Handle invalid arguments with 400 status."""
        logger.warning(
            "Invalid argument", field=exc.field, error=exc.message, path=str(request.url)
        )
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle not found errors with 404 status."""
        logger.info(
            "Resource not found",
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            path=str(request.url),
        )
        return JSONResponse(status_code=404, content=exc.to_dict())

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle configuration errors with 500 status."""
        logger.error("Configuration error", error=exc.message, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())

    @app.exception_handler(HookRelayError)
    async def hookrelay_error_handler(request: Request, exc: HookRelayError) -> JSONResponse:
        """Handle all other hookrelay errors with 500 status."""
        logger.error("hookrelay error", error=exc.message, code=exc.code, path=str(request.url))
        return JSONResponse(status_code=500, content=exc.to_dict())

    app.include_router(router)

    return app


# Default app instance for uvicorn
app = create_app()
