import asyncio
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from stshield.cache.base import get_order_cache
from stshield.core.config import get_settings
from stshield.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from stshield.core.logging import bind_request_id, configure_logging, get_logger
from stshield.routers import exports, health, payments
from stshield.services.notifications import get_notification_queue

settings = get_settings()
configure_logging(debug=settings.debug)
log = get_logger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10.0


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    log.error(
        "unhandled_loop_exception",
        message=context.get("message"),
        error=str(exc) if exc else None,
        exc_info=exc,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    asyncio.get_running_loop().set_exception_handler(_loop_exception_handler)
    if settings.sentry_dsn:
        import sentry_sdk
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
        log.info("startup", msg="Sentry enabled")
    if settings.policy_store_backend == "mongo":
        from stshield.db.init import init_db
        await init_db()
        log.info("startup", msg="DB connected")
    if not settings.razorpay_configured:
        log.warning("startup", msg="Razorpay credentials not found - payment features disabled")
    log.info("startup", env=settings.env, version=settings.app_version)
    yield
    log.info("shutdown", msg="draining notifications")
    queue = get_notification_queue()
    await queue.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
    await queue.close()
    await get_order_cache().close()
    log.info("shutdown", msg="stopped")


app = FastAPI(
    title="ST Shield API",
    version=settings.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials="*" not in settings.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    bind_request_id(request_id)
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    log.info(
        "request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


app.add_exception_handler(AppError, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Routers
app.include_router(payments.router, prefix="/api", tags=["payments"])
app.include_router(exports.router, prefix="/api/admin/exports", tags=["exports"])
app.include_router(health.router, prefix="/health", tags=["health"])


def run() -> None:
    """Serve the API. Usage: stshield-api or python -m stshield.main"""
    import uvicorn
    uvicorn.run("stshield.main:app", host=settings.host, port=settings.port, proxy_headers=True)


if __name__ == "__main__":
    run()
