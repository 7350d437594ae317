"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mnemos import __version__
from mnemos.channels.web import WebChatAdapter
from mnemos.config.schema import MnemosConfig
from mnemos.errors import StorageError, VectorStoreError
from mnemos.server.routes import create_router
from mnemos.services import Services, build_services

logger = logging.getLogger(__name__)


def create_app(config: MnemosConfig, services: Services | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        config: Mnemos configuration
        services: Pre-built services (defaults to building them from config)

    Returns:
        Configured FastAPI app
    """
    services = services or build_services(config)
    adapter = WebChatAdapter(services.gateway, cookie_name=config.auth.cookie_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await services.start()
        await adapter.start()
        try:
            yield
        finally:
            await adapter.stop()
            await services.stop()

    app = FastAPI(
        title="Mnemos",
        description="Conversational assistant backend with short- and long-term memory",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StorageError)
    @app.exception_handler(VectorStoreError)
    async def unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
        """Report an unreachable message store or vector index as 503."""
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return JSONResponse(status_code=503, content={"detail": "storage temporarily unavailable"})

    app.include_router(create_router(services))
    app.include_router(adapter.router)

    return app
