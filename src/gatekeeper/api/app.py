"""FastAPI application with lifespan management."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from gatekeeper.api.middleware import RequestLoggingMiddleware
from gatekeeper.api.routes.admin import router as admin_router
from gatekeeper.api.routes.verify import router as verify_router
from gatekeeper.auth.admin import AdminService
from gatekeeper.auth.cache import ValidationCache
from gatekeeper.auth.gatekeeper import Gatekeeper
from gatekeeper.auth.usage import UsageAccumulator
from gatekeeper.config import settings
from gatekeeper.errors import (
    AuthCodeNotFoundError,
    AuthCodeValidationError,
    StoreUnavailableError,
)
from gatekeeper.logging_config import configure_logging
from gatekeeper.storage.database import async_session, engine
from gatekeeper.storage.store import SqlAuthCodeStore

logger = structlog.get_logger()


async def _cleanup_loop(cache: ValidationCache) -> None:
    """Periodic cleanup of expired validation cache entries."""
    while True:
        await asyncio.sleep(settings.cache_cleanup_interval_seconds)
        try:
            removed = cache.cleanup()
            if removed:
                logger.debug("validation_cache_cleanup", entries_removed=removed)
        except Exception:
            logger.exception("validation_cache_cleanup_error")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown.

    Startup:
        - Wire store, validation cache, usage accumulator, gatekeeper
          and admin service onto ``app.state``.
        - Start the usage flush loop and the cache cleanup task.
    Shutdown:
        - Cancel cleanup task.
        - Stop the accumulator (final flush of pending usage).
        - Dispose database engine (close connection pool).
    """
    configure_logging(
        environment=str(settings.environment),
        log_level=settings.log_level,
    )
    if settings.admin_token is None:
        logger.warning("admin_token_not_configured")

    store = SqlAuthCodeStore(async_session)
    cache = ValidationCache(
        ttl_seconds=settings.cache_ttl_seconds,
        max_entries=settings.cache_max_entries,
    )
    accumulator = UsageAccumulator(
        store,
        flush_interval_seconds=settings.usage_flush_interval_seconds,
        flush_threshold=settings.usage_flush_threshold,
        max_pending=settings.usage_max_pending,
        max_retries=settings.usage_flush_max_retries,
        backoff_seconds=settings.usage_flush_backoff_seconds,
    )
    app.state.usage_accumulator = accumulator
    app.state.gatekeeper = Gatekeeper(
        store,
        cache,
        accumulator,
        lookup_timeout_seconds=settings.store_lookup_timeout_seconds,
    )
    app.state.admin_service = AdminService(
        store,
        cache=cache,
        code_prefix=settings.auth_code_prefix,
    )

    await accumulator.start()
    cleanup_task = asyncio.create_task(_cleanup_loop(cache))

    logger.info("app_started", environment=str(settings.environment))
    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await accumulator.stop()
    await engine.dispose()
    logger.info("app_stopped")


app = FastAPI(
    title="Auth Code Gatekeeper",
    description="Tenant auth code validation and usage metering for the inference gateway",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.is_dev,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allowed_methods,
    allow_headers=settings.cors_allowed_headers,
)


HEALTH_CHECK_TIMEOUT = 5.0


@app.get("/health")
async def health(request: Request) -> JSONResponse:
    """Deep health check: verifies DB connectivity, reports pending usage."""
    checks: dict[str, str] = {}
    overall = "ok"

    # DB check
    try:
        async with async_session() as session:
            await asyncio.wait_for(
                session.execute(text("SELECT 1")),
                timeout=HEALTH_CHECK_TIMEOUT,
            )
        checks["db"] = "ok"
    except (TimeoutError, OperationalError, SQLAlchemyError) as e:
        logger.warning("health_check_db_error", error=type(e).__name__)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"
    except Exception as e:
        logger.error("health_check_db_unexpected", error=str(e), exc_info=True)
        checks["db"] = f"error: {type(e).__name__}"
        overall = "degraded"

    content: dict[str, object] = {
        "status": overall,
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(timespec="seconds"),
    }
    accumulator = getattr(request.app.state, "usage_accumulator", None)
    if accumulator is not None:
        content["usage"] = {
            "pending_units": accumulator.pending_units,
            "dropped_units": accumulator.dropped_units,
        }

    status_code = 200 if overall == "ok" else 503
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(
    request: Request,
    exc: StoreUnavailableError,
) -> JSONResponse:
    """Store failures on admin paths surface as a service-level error."""
    return JSONResponse(status_code=503, content={"detail": "store_unavailable"})


@app.exception_handler(AuthCodeValidationError)
async def validation_error_handler(
    request: Request,
    exc: AuthCodeValidationError,
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"detail": [{"field": exc.field, "reason": exc.reason}]},
    )


@app.exception_handler(AuthCodeNotFoundError)
async def not_found_handler(
    request: Request,
    exc: AuthCodeNotFoundError,
) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Auth code not found"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Catch-all handler for unhandled exceptions."""
    logger.error("unhandled_exception", exc_info=exc, path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


app.include_router(admin_router)
app.include_router(verify_router)
