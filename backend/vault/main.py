"""Vault Backend Application.

This is the main entry point for the Vault chat relay.

Modules:
    - chat: WebSocket presence, history and broadcast engine
    - auth: Shared access-code gate
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from vault import __version__
from vault.auth.router import router as auth_router
from vault.chat.manager import ConnectionManager
from vault.chat.router import router as chat_router
from vault.chat.session import SessionEventRouter
from vault.chat.store import create_message_store
from vault.config import get_config

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# uvicorn.access logs every HTTP request, including health checks
for _noisy in ("uvicorn.access", "duckdb"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()

# Added to every HTTP response. Content-Security-Policy and
# Cross-Origin-Embedder-Policy are never set.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Permitted-Cross-Domain-Policies": "none",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in vault.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if isinstance(configured_level, int):
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    # Backend selection happens once; there is no retry after startup
    store = create_message_store(config.storage, config.chat)
    connections = ConnectionManager()
    app.state.connections = connections
    app.state.session = SessionEventRouter(connections, store, config.chat)
    logger.info(
        f"Vault running on http://{config.server.host}:{config.server.port} "
        f"(history backend: {store.name})"
    )

    yield  # Application runs here

    # Shutdown
    store.close()
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Vault API",
    description="Real-time group chat relay",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response

# Register all routers
app.include_router(chat_router)
app.include_router(auth_router)


@app.get("/healthcheck")
async def healthcheck() -> dict:
    """Liveness check used to keep hosted instances awake.

    Returns:
        dict: Status, process uptime in seconds and current UTC time.
    """
    return {
        "status": "alive",
        "uptime": time.monotonic() - _STARTED_AT,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Static frontend goes last so it never shadows the API routes
_static_dir = get_config().server.static_dir
if _static_dir and Path(_static_dir).is_dir():
    app.mount("/", StaticFiles(directory=_static_dir, html=True), name="static")
