"""
main.py
CoolieMate API entry point: app factory, middleware, error handlers
and router registration.

Run locally with:
    python main.py
or
    uvicorn main:app --reload
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from pybreaker import CircuitBreakerError
from sqlalchemy.exc import IntegrityError

import config.redis_client as redis_state
from config.database import close_db, init_db, ping_db
from config.redis_client import RedisCache, close_redis, init_redis
from config.settings import settings

from services.admin.router import router as admin_router
from services.analytics.router import router as analytics_router
from services.booking.router import pricing_router
from services.booking.router import router as booking_router
from services.notification.router import router as notification_router
from services.pnr.router import router as pnr_router
from services.porter.router import directory_router as porter_directory_router
from services.porter.router import router as porter_router
from services.review.router import router as review_router

API_PREFIX = "/api"
UNTHROTTLED_PATHS = {"/health", "/docs", "/redoc", "/openapi.json", "/metrics"}

ROUTERS = (
    booking_router,
    pricing_router,
    porter_router,
    porter_directory_router,
    review_router,
    notification_router,
    analytics_router,
    admin_router,
    pnr_router,
)


# ── Logging ──────────────────────────────────────────────────

class JSONFormatter(logging.Formatter):
    """One JSON object per line, ready for the log shipper."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "instance": os.getenv("INSTANCE_NAME", "unknown"),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────

def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _error_response(request: Request, status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": _request_id(request), **extra},
    )


async def _anonymous_request_allowed(request: Request) -> bool:
    """Porter/admin traffic carries a bearer token and is never throttled."""
    if request.url.path in UNTHROTTLED_PATHS:
        return True
    if request.headers.get("Authorization", "").startswith("Bearer "):
        return True
    if redis_state.redis_client is None:
        return True

    client_ip = request.client.host if request.client else "unknown"
    try:
        allowed = await RedisCache(redis_state.redis_client).allow_anonymous_request(client_ip)
    except Exception as e:
        # Redis trouble must not take the API down with it
        logger.error(f"Rate limit check failed: {e}")
        return True
    if not allowed:
        logger.warning(f"Rate limit exceeded for IP {client_ip}")
    return allowed


async def _redis_healthy() -> bool:
    if redis_state.redis_client is None:
        return False
    try:
        await redis_state.redis_client.ping()
        return True
    except Exception:
        return False


# ── Lifespan ──────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()
    await init_redis()
    logger.info("Database and Redis connected")

    yield

    await close_redis()
    await close_db()
    logger.info("Server shutdown complete")


# ── App Factory ───────────────────────────────────────────────

def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## CoolieMate API

Book a railway porter in a few taps:
- **Bookings**: pending → accepted → completed, or declined; passengers poll for the decision
- **Porters**: phone + password login, online toggle, booking queue, earnings
- **Reviews**: rate completed trips; porter ratings are kept as a running average
- **Notifications**: per-recipient feed polled by clients
- **PNR**: train details prefill, with a local fallback
- **Admin**: bookings, porter verification, visit analytics

### Authentication
Passengers do not log in. Porter and admin endpoints require
`Authorization: Bearer <access_token>` from `/api/porter/login` or `/api/admin/login`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)

    @app.middleware("http")
    async def throttle_anonymous(request: Request, call_next):
        # Pollers hit the API every few seconds, so the limit stays generous
        if not await _anonymous_request_allowed(request):
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Please slow down."},
                headers={"Retry-After": "60"},
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        """Tag every request with an id and report how long it took."""
        request.state.request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        response.headers["X-Request-ID"] = request.state.request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
        return response

    # ── Exception Handlers ────────────────────────────────────

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        # Unique constraints lost to a concurrent request
        logger.warning(f"[{_request_id(request)}] Integrity error: {exc.orig}")
        return _error_response(request, 409, "Resource already exists")

    @app.exception_handler(CircuitBreakerError)
    async def circuit_open_handler(request: Request, exc: CircuitBreakerError):
        logger.error(f"[{_request_id(request)}] Circuit breaker open: {exc}")
        return _error_response(
            request, 503, "Service temporarily unavailable. Please try again later.",
            status="degraded",
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"[{_request_id(request)}] Unhandled error: {exc}", exc_info=True)
        detail = str(exc) if settings.DEBUG else "An internal server error occurred"
        return _error_response(request, 500, detail)

    # ── Routes ────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], include_in_schema=False)
    async def health_check():
        checks = {
            "version": settings.APP_VERSION,
            "database": "ok" if await ping_db() else "error",
            "redis": "ok" if await _redis_healthy() else "error",
        }
        healthy = checks["database"] == "ok" and checks["redis"] == "ok"
        checks["status"] = "ok" if healthy else "degraded"
        return JSONResponse(content=checks, status_code=200 if healthy else 503)

    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    for service_router in ROUTERS:
        app.include_router(service_router, prefix=API_PREFIX)

    Instrumentator().instrument(app).expose(app, endpoint="/metrics", tags=["Monitoring"])

    return app


# ── Entry Point ───────────────────────────────────────────────

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
        log_level="debug" if settings.DEBUG else "info",
        access_log=True,
    )
