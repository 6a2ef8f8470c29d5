"""
FastAPI application entry point.
Includes API-key middleware, request timing, global error handler, all routers,
and the background processing worker (plus the optional vendor poller).
"""

import asyncio
import time
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from gym_access.routers import webhook, events, attendance, integrations, jobs, health
from gym_access.database import create_tables
from gym_access.config import settings
from gym_access.services.processing_queue import worker
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v1"

app = FastAPI(
    title="Gym Access Events API",
    description="Access-control event ingestion → member attendance and denial logs.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to the dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def is_open_path(path: str) -> bool:
    """Paths reachable without an API key: vendor webhooks, health, docs."""
    if path in {f"{API_PREFIX}/health", "/docs", "/redoc", "/openapi.json"}:
        return True
    return path.startswith(f"{API_PREFIX}/access-events/") and path.endswith("/webhook")


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Lightweight API key auth for admin/trigger endpoints.
    Vendor webhooks are excluded — the vendor cloud doesn't send our key.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        if is_open_path(request.url.path) or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(webhook.router,      prefix=API_PREFIX, tags=["📡 Webhook"])
app.include_router(events.router,       prefix=API_PREFIX, tags=["🗂  Access Events"])
app.include_router(attendance.router,   prefix=API_PREFIX, tags=["✅ Attendance"])
app.include_router(integrations.router, prefix=API_PREFIX, tags=["🔌 Integrations"])
app.include_router(jobs.router,         prefix=API_PREFIX, tags=["⚙️  Processing"])
app.include_router(health.router,       prefix=API_PREFIX, tags=["💚 Health"])


_poller_task = None


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    global _poller_task
    logger.info("🚀 Gym access events backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    worker.start()

    if settings.EVENT_POLLING_ENABLED:
        from gym_access.services.event_poller import start_event_polling
        _poller_task = asyncio.create_task(start_event_polling(), name="event-poller")
        logger.info("📡 Vendor event polling started (pull mode)")

    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Gym access events backend shutting down...")
    if _poller_task is not None:
        _poller_task.cancel()
    await worker.stop()
