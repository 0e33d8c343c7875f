"""ARQ job definitions: policy notifications."""

import uuid
from typing import Any

from arq.connections import RedisSettings

from stshield.core.config import get_settings
from stshield.core.logging import bind_request_id, get_logger
from stshield.services.notifications import deliver_amount_mismatch, deliver_policy_created

log = get_logger(__name__)


async def _run_with_dlq(
    job_name: str,
    job_id: str | None,
    args: list[Any],
    kwargs: dict[str, Any],
    coro,
) -> Any:
    """Run coroutine; on exception persist to FailedJob (when Mongo is configured) then re-raise."""
    try:
        return await coro
    except Exception as e:
        fid = job_id or str(uuid.uuid4())
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        if get_settings().policy_store_backend == "mongo":
            from stshield.db.init import init_db
            from stshield.models.failed_job import FailedJob
            await init_db()
            await FailedJob(
                job_name=job_name,
                job_id=fid,
                args=args,
                kwargs=kwargs,
                reason=str(e)[:2000],
                retries=get_settings().email_max_attempts,
            ).insert()
        raise


def _job_id(ctx: dict[str, Any]) -> str | None:
    return ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None


async def notify_policy_created(ctx: dict[str, Any], payload: dict[str, Any]) -> dict[str, str]:
    """Customer confirmation + company acknowledgment for a new policy."""
    bind_request_id(payload.get("request_id") or "worker")
    log.info("job_start", job="notify_policy_created", policy_number=payload.get("policy", {}).get("policy_number"))
    return await _run_with_dlq("notify_policy_created", _job_id(ctx), [payload], {}, deliver_policy_created(payload))


async def notify_amount_mismatch(ctx: dict[str, Any], payload: dict[str, Any]) -> dict[str, str]:
    """Tamper alert for an amount mismatch."""
    bind_request_id(payload.get("request_id") or "worker")
    log.info("job_start", job="notify_amount_mismatch", order_id=payload.get("alert", {}).get("order_id"))
    return await _run_with_dlq("notify_amount_mismatch", _job_id(ctx), [payload], {}, deliver_amount_mismatch(payload))


async def startup(ctx: dict) -> None:
    from stshield.core.logging import configure_logging
    configure_logging(debug=get_settings().debug)
    if get_settings().policy_store_backend == "mongo":
        from stshield.db.init import init_db
        await init_db()


async def shutdown(ctx: dict) -> None:
    pass


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path and u.path != "/" else 0,
    )
