"""CineChance recommendation service: FastAPI app, middleware and background jobs."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.sessions import SessionMiddleware

from src.api import api_router
from src.config import get_settings
from src.constants import (
    MAX_CONSECUTIVE_FAILURES,
    SESSION_COOKIE_NAME,
    SESSION_TIMEOUT_DAYS,
    SYNC_INTERVAL_CACHE_CLEANUP,
    SYNC_INTERVAL_TASTE_PROFILES,
)
from src.db import async_session_maker, init_db, session_scope
from src.services.metadata.tmdb import get_tmdb_service
from src.services.recommendations import TasteProfileStore
from src.utils.cache import cache
from src.utils.http_client import close_all_clients
from src.utils.logging import get_logger, setup_logging
from src.utils.metrics import MetricsMiddleware, metrics

settings = get_settings()
setup_logging()
logger = get_logger(__name__)

APP_VERSION = "0.1.0"
SHUTDOWN_GRACE_SECONDS = 10.0

# The API serves JSON only, so the CSP forbids everything
SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        if settings.is_production:
            response.headers["Strict-Transport-Security"] = HSTS_HEADER
        return response


async def run_periodic(
    name: str,
    interval: float,
    job: Callable[[], Awaitable[None]],
    shutdown_event: asyncio.Event,
) -> None:
    """Run ``job`` every ``interval`` seconds until shutdown.

    After MAX_CONSECUTIVE_FAILURES failures in a row the loop skips one extra
    interval before trying again.
    """
    consecutive_failures = 0

    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            break
        except TimeoutError:
            pass

        try:
            await job()
            metrics.background_task_runs_total.inc(task=name, status="success")
            consecutive_failures = 0
        except Exception as e:
            consecutive_failures += 1
            metrics.background_task_runs_total.inc(task=name, status="error")
            logger.error(f"Background task {name} failed ({consecutive_failures}/{MAX_CONSECUTIVE_FAILURES}): {e}")
            if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                logger.critical(f"Background task {name}: too many consecutive failures, backing off")
                await asyncio.sleep(interval)
                consecutive_failures = 0


async def refresh_taste_profiles() -> None:
    async with session_scope() as db:
        refreshed = await TasteProfileStore(db, get_tmdb_service()).refresh_all()
    logger.info(f"Taste profile refresh completed: {refreshed} profiles")


async def cleanup_metadata_cache() -> None:
    removed = get_tmdb_service().cache.cleanup()
    if removed:
        logger.debug(f"Metadata cache cleanup removed {removed} expired entries")


BACKGROUND_JOBS: list[tuple[str, float, Callable[[], Awaitable[None]]]] = [
    ("taste_profiles", SYNC_INTERVAL_TASTE_PROFILES, refresh_taste_profiles),
    ("metadata_cache_cleanup", SYNC_INTERVAL_CACHE_CLEANUP, cleanup_metadata_cache),
]


async def stop_tasks(tasks: list[asyncio.Task], timeout: float) -> None:
    """Wait for tasks to finish on their own, then cancel the stragglers."""
    done, pending = await asyncio.wait(tasks, timeout=timeout)
    if pending:
        logger.warning(f"{len(pending)} background tasks did not stop in time, cancelling")
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()
    logger.info("Database initialized")

    if await cache.connect():
        logger.info("Redis cache connected")
    else:
        logger.warning("Redis cache unavailable - stats served uncached")

    shutdown_event = asyncio.Event()
    tasks = [
        asyncio.create_task(run_periodic(name, interval, job, shutdown_event), name=name)
        for name, interval, job in BACKGROUND_JOBS
    ]
    logger.info(f"Started background tasks: {', '.join(name for name, _, _ in BACKGROUND_JOBS)}")

    yield

    shutdown_event.set()
    await stop_tasks(tasks, SHUTDOWN_GRACE_SECONDS)
    await cache.close()
    await close_all_clients()
    logger.info("Application shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=APP_VERSION,
    lifespan=lifespan,
)

# Middleware (order matters - first added = last executed)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)

if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8080", "http://127.0.0.1:8080"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

# Holds the per-session "already shown" set for recommendation runs
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.app_secret_key,
    session_cookie=SESSION_COOKIE_NAME,
    max_age=60 * 60 * 24 * SESSION_TIMEOUT_DAYS,
    same_site="lax",
    https_only=settings.is_production,
)

app.include_router(api_router)

_app_start_time = datetime.now(UTC)


async def _check(ping: Callable[[], Awaitable[object]]) -> dict[str, str]:
    try:
        await ping()
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        return {"status": "unhealthy"}
    return {"status": "healthy"}


async def _ping_database() -> None:
    async with async_session_maker() as db:
        await db.execute(text("SELECT 1"))


@app.get("/health", tags=["monitoring"])
async def health_check() -> JSONResponse:
    """Liveness and dependency health for load balancers.

    Returns 503 when Postgres or Redis is unreachable.
    """
    checks = {
        "database": await _check(_ping_database),
        "redis": await _check(cache.ping),
    }
    healthy = all(check["status"] == "healthy" for check in checks.values())
    now = datetime.now(UTC)
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "timestamp": now.isoformat(),
            "uptime_seconds": (now - _app_start_time).total_seconds(),
            "version": APP_VERSION,
            "checks": checks,
        },
    )


@app.get("/metrics", tags=["monitoring"])
async def prometheus_metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=metrics.format_prometheus(),
        media_type="text/plain; charset=utf-8",
    )
