"""FastAPI application factory.

Learn: create_app() builds the FastAPI instance; the lifespan disposes the
database engine on shutdown. Middleware, CORS and routers are wired here.
"""

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ecoride_auth import __version__
from ecoride_auth.api import api_router
from ecoride_auth.config import settings
from ecoride_auth.middleware.request_id import RequestIdMiddleware
from ecoride_auth.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "ecoride_auth.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info("ecoride_auth.shutdown")

    from ecoride_auth.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="EcoRide Auth",
        description="Authentication and token issuance for EcoRide customers and riders",
        version=__version__,
        lifespan=lifespan,
    )

    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → Security → handler
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: ecoride_auth.main:app)
app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(
        "ecoride_auth.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
