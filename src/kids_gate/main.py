"""FastAPI application entry point."""

import logging
import os
import time
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kids_gate.api.routes import get_record_store, router
from kids_gate.api.websocket import handle_browser_websocket
from kids_gate.config import get_settings

# Simple in-memory rate limiter for WebSocket connections
_ws_connection_times: dict[str, list[float]] = defaultdict(list)
_WS_RATE_LIMIT = 10  # max WS connections per IP per window
_WS_RATE_WINDOW = 60  # seconds

# Configure structlog based on environment
is_production = os.getenv("ENV", "development").lower() == "production"

if is_production:
    # Production: JSON format for machine parsing
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
else:
    # Development: console format for human readability
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await get_record_store().aclose()


app = FastAPI(title="Kids Gate", version="0.1.0", lifespan=lifespan)
_allowed_origins_env = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000"
)
allowed_origins = [o.strip() for o in _allowed_origins_env.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    """Optional APP_SECRET check for the parent-facing REST API."""
    if not settings.app_secret or request.url.path == "/api/health":
        return await call_next(request)
    if request.headers.get("X-App-Secret", "") != settings.app_secret:
        return JSONResponse({"error": "Unauthorized"}, status_code=401)
    return await call_next(request)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Tablet WebSocket endpoint with per-IP rate limiting."""
    if settings.app_secret and websocket.headers.get("X-App-Secret", "") != settings.app_secret:
        await websocket.close(code=1008, reason="Unauthorized")
        return
    client_ip = websocket.client.host if websocket.client else "unknown"
    now = time.time()
    times = _ws_connection_times[client_ip]
    times[:] = [t for t in times if now - t < _WS_RATE_WINDOW]
    if len(times) >= _WS_RATE_LIMIT:
        logger.warning("ws_rate_limited", client=client_ip)
        await websocket.close(code=1008, reason="Rate limit exceeded")
        return
    times.append(now)
    await handle_browser_websocket(websocket, settings, get_record_store())


def main() -> None:
    """Run the application."""
    uvicorn.run(
        "kids_gate.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
