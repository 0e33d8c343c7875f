import os
import platform
import resource
import sys
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from stshield.cache.base import PendingOrderCache, get_order_cache
from stshield.core.config import get_settings
from stshield.core.logging import get_logger
from stshield.policy_store.base import PolicyStore, get_policy_store

router = APIRouter()
log = get_logger(__name__)

STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return round(time.monotonic() - STARTED_AT, 3)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def memory_usage_mb() -> dict[str, float]:
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is KB on Linux, bytes on macOS
    peak = usage.ru_maxrss / (1024 * 1024) if sys.platform == "darwin" else usage.ru_maxrss / 1024
    out = {"peak_rss": round(peak, 2)}
    try:
        with open("/proc/self/statm") as f:
            pages = int(f.read().split()[1])
        out["rss"] = round(pages * os.sysconf("SC_PAGE_SIZE") / (1024 * 1024), 2)
    except (OSError, ValueError, IndexError):
        pass
    return out


async def _check_store(store: PolicyStore) -> dict[str, Any]:
    backend = get_settings().policy_store_backend
    try:
        await store.ping()
        return {"status": "connected", "backend": backend}
    except Exception as e:
        log.error("health_store_check_failed", error=str(e))
        return {"status": "error", "backend": backend, "error": str(e)}


async def _check_order_cache(cache: PendingOrderCache) -> dict[str, Any]:
    backend = get_settings().order_cache_backend
    ping = getattr(cache, "ping", None)
    if ping is None:
        return {"status": "ok", "backend": backend}
    try:
        await ping()
        return {"status": "connected", "backend": backend}
    except Exception as e:
        log.error("health_cache_check_failed", error=str(e))
        return {"status": "error", "backend": backend, "error": str(e)}


def _check_razorpay() -> dict[str, Any]:
    configured = get_settings().razorpay_configured
    return {"status": "configured" if configured else "not_configured", "configured": configured}


@router.get("")
async def health(
    store: PolicyStore = Depends(get_policy_store),
    cache: PendingOrderCache = Depends(get_order_cache),
):
    """Liveness/readiness summary for load balancers and monitoring."""
    start = time.perf_counter()
    settings = get_settings()
    try:
        body = {
            "status": "OK",
            "timestamp": _now(),
            "uptime": uptime_seconds(),
            "environment": settings.env,
            "version": settings.app_version,
            "memory": memory_usage_mb(),
            "services": {
                "database": await _check_store(store),
                "order_cache": await _check_order_cache(cache),
                "razorpay": _check_razorpay(),
            },
            "system": {
                "python_version": platform.python_version(),
                "platform": sys.platform,
                "arch": platform.machine(),
                "pid": os.getpid(),
            },
        }
    except Exception as e:
        log.exception("health_check_failed", error=str(e))
        return ORJSONResponse(
            status_code=503,
            content={
                "status": "ERROR",
                "timestamp": _now(),
                "error": "Health check failed",
                "uptime": uptime_seconds(),
            },
        )
    log.debug("health_check", duration_ms=round((time.perf_counter() - start) * 1000, 2))
    return body


@router.get("/metrics")
async def metrics():
    """Process resource metrics."""
    try:
        usage = resource.getrusage(resource.RUSAGE_SELF)
        return {
            "timestamp": _now(),
            "process": {
                "uptime": uptime_seconds(),
                "memory": memory_usage_mb(),
                "cpu": {"user": usage.ru_utime, "system": usage.ru_stime},
                "python_version": platform.python_version(),
                "pid": os.getpid(),
            },
            "system": {
                "platform": sys.platform,
                "arch": platform.machine(),
                "cpu_count": os.cpu_count(),
            },
        }
    except Exception as e:
        log.exception("metrics_failed", error=str(e))
        return ORJSONResponse(status_code=500, content={"error": "Failed to retrieve metrics"})
