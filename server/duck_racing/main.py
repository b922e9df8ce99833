"""Duck Race Bot - FastAPI Application."""

import argparse
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from duck_racing import __version__
from duck_racing.api import api_router
from duck_racing.api.helpers import race_error_response
from duck_racing.config import settings
from duck_racing.database import async_session_maker, init_db
from duck_racing.discord import DiscordDisplayNames
from duck_racing.errors import RaceError
from duck_racing.rate_limit import limiter
from duck_racing.services import build_services
from duck_racing.services.dispatcher import CommandDispatcher

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    # Startup
    logger.info("Starting Duck Race Bot server...")
    try:
        await init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database initialization skipped: {e}")

    yield

    # Shutdown: stop admitting claims, let in-flight ones finish
    app.state.services.close()
    logger.info("Shutting down Duck Race Bot server...")


app = FastAPI(
    title="Duck Race Bot API",
    description="Race claim coordination for Discord duck races",
    version=__version__,
    lifespan=lifespan,
)

# One set of services (and channel queues) per process
app.state.services = build_services(async_session_maker)
app.state.dispatcher = CommandDispatcher(
    app.state.services,
    DiscordDisplayNames(),
    wipe_ttl=settings.wipe_confirmation_ttl,
)

# Store limiter on app state for slowapi
app.state.limiter = limiter


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please try again later."},
    )


app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
app.add_exception_handler(RaceError, race_error_response)  # type: ignore[arg-type]
app.add_middleware(SlowAPIMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

# Mount API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


def main() -> None:
    """Run the server."""
    import uvicorn

    parser = argparse.ArgumentParser(description="Duck Race Bot Server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    logger.info(f"Starting server on http://{args.host}:{args.port}")
    logger.info(f"API docs: http://localhost:{args.port}/docs")

    uvicorn.run(
        "duck_racing.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
