"""
SportSync API Server

FastAPI server for organising amateur football matches: matches, participation,
social feed, statistics, finances and real-time events over WebSocket.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
import uvicorn
from dotenv import load_dotenv
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

load_dotenv()

from sportsync.api.routes import router, limiter as routes_limiter  # noqa: E402
from sportsync.models.schemas import HealthResponse  # noqa: E402
from sportsync.repositories.factory import create_repository  # noqa: E402
from sportsync.services.websocket_manager import get_websocket_manager  # noqa: E402

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up SportSync API...")

    # Unknown STORAGE_BACKEND or an unreachable database with STORAGE_BACKEND=sql
    # aborts startup; auto mode degrades to memory with a warning
    repository = await create_repository()
    app.state.repository = repository
    fallback_reason = getattr(repository, "fallback_reason", None)
    if fallback_reason:
        logger.warning(f"Storage backend: {repository.backend_name} (fallback: {fallback_reason})")
    else:
        logger.info(f"Storage backend: {repository.backend_name}")

    yield  # App is running

    # Shutdown
    logger.info("Shutting down SportSync API...")
    try:
        await repository.close()
        logger.info("Storage backend closed")
    except Exception as e:
        logger.error(f"Error closing storage backend: {e}", exc_info=True)


app = FastAPI(
    title="SportSync API",
    description="API for organising matches, participants, statistics and match finances",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are reported as 400, like domain validation errors."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# Add CORS middleware, origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        Service status, the active storage backend and the number of open sockets
    """
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        return HealthResponse(status="starting", storage_backend="none")
    healthy = True
    try:
        await repository.ping()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        healthy = False
    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        storage_backend=repository.backend_name,
        websocket_connections=await get_websocket_manager().get_connection_count(),
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
