"""Best-effort policy notifications, queued after the response is prepared.

Jobs are plain dicts so the same payload runs either on a local asyncio task
or on the arq worker. Each email is retried with exponential backoff; a job
that still fails is logged (and dead-lettered on the worker) but never
changes the outcome of the payment verification that queued it.
"""

import asyncio
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Awaitable, Callable

from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from stshield.core.config import get_settings
from stshield.core.logging import get_logger
from stshield.services.email import (
    EmailMessage,
    EmailNotConfiguredError,
    EmailSender,
    build_company_acknowledgment,
    build_customer_confirmation,
    build_tamper_alert,
    get_email_sender,
)

log = get_logger(__name__)

JOB_POLICY_CREATED = "notify_policy_created"
JOB_AMOUNT_MISMATCH = "notify_amount_mismatch"


class NotificationError(Exception):
    def __init__(self, job_name: str, failures: dict[str, str]):
        self.job_name = job_name
        self.failures = failures
        super().__init__(f"{job_name} failed: {failures}")


async def send_with_retry(
    sender: EmailSender,
    message: EmailMessage,
    attempts: int | None = None,
    wait_multiplier: float = 1.0,
) -> str:
    attempts = attempts or get_settings().email_max_attempts
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=wait_multiplier, max=30),
        retry=retry_if_not_exception_type(EmailNotConfiguredError),
        reraise=True,
    ):
        with attempt:
            n = attempt.retry_state.attempt_number
            if n > 1:
                log.info("email_retry", subject=message.subject, attempt=n)
            message_id = await sender.send(message)
    return message_id


async def _send_all(
    job_name: str,
    messages: dict[str, EmailMessage],
    sender: EmailSender,
    wait_multiplier: float,
) -> dict[str, str]:
    """Send each message independently; raise NotificationError listing the ones that failed."""
    sent: dict[str, str] = {}
    failures: dict[str, str] = {}
    for label, message in messages.items():
        try:
            sent[label] = await send_with_retry(sender, message, wait_multiplier=wait_multiplier)
            log.info("email_sent", job=job_name, email=label, message_id=sent[label])
        except Exception as e:
            failures[label] = str(e)[:500]
            log.error("email_failed", job=job_name, email=label, error=str(e))
    if failures:
        raise NotificationError(job_name, failures)
    return sent


async def deliver_policy_created(
    payload: dict[str, Any],
    sender: EmailSender | None = None,
    wait_multiplier: float = 1.0,
) -> dict[str, str]:
    """Customer confirmation + company acknowledgment."""
    sender = sender or get_email_sender()
    customer = payload.get("customer", {})
    policy = payload.get("policy", {})
    messages = {
        "customer": build_customer_confirmation(customer, policy),
        "company": build_company_acknowledgment(customer, policy, get_settings().company_email),
    }
    return await _send_all(JOB_POLICY_CREATED, messages, sender, wait_multiplier)


async def deliver_amount_mismatch(
    payload: dict[str, Any],
    sender: EmailSender | None = None,
    wait_multiplier: float = 1.0,
) -> dict[str, str]:
    """Tamper alert to the business."""
    sender = sender or get_email_sender()
    messages = {
        "company": build_tamper_alert(payload.get("customer", {}), payload.get("alert", {}), get_settings().company_email),
    }
    return await _send_all(JOB_AMOUNT_MISMATCH, messages, sender, wait_multiplier)


DeliverFn = Callable[..., Awaitable[dict[str, str]]]

JOBS: dict[str, DeliverFn] = {
    JOB_POLICY_CREATED: deliver_policy_created,
    JOB_AMOUNT_MISMATCH: deliver_amount_mismatch,
}


class NotificationQueue(ABC):
    @abstractmethod
    async def enqueue(self, job_name: str, payload: dict[str, Any]) -> None:
        """Queue a job; never raises."""
        ...

    async def drain(self, timeout: float | None = None) -> None:
        pass

    async def close(self) -> None:
        pass


class LocalNotificationQueue(NotificationQueue):
    """Runs jobs as asyncio tasks in this process; references are kept so shutdown can drain them."""

    def __init__(self, sender: EmailSender | None = None, wait_multiplier: float = 1.0) -> None:
        self.sender = sender
        self.wait_multiplier = wait_multiplier
        self._tasks: set[asyncio.Task] = set()

    async def enqueue(self, job_name: str, payload: dict[str, Any]) -> None:
        if job_name not in JOBS:
            log.error("notification_unknown_job", job=job_name)
            return
        task = asyncio.create_task(self._run(job_name, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job_name: str, payload: dict[str, Any]) -> dict[str, str] | None:
        try:
            return await JOBS[job_name](payload, sender=self.sender, wait_multiplier=self.wait_multiplier)
        except Exception as e:
            log.error("notification_failed", job=job_name, error=str(e))
            return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            log.warning("notification_drain_timeout", pending=len(pending))


class ArqNotificationQueue(NotificationQueue):
    """Hands jobs to the arq worker (stshield.worker.run_worker) through Redis."""

    def __init__(self) -> None:
        self._pool = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self):
        async with self._pool_lock:
            if self._pool is None:
                from arq import create_pool
                from stshield.worker.tasks import get_redis_settings
                self._pool = await create_pool(get_redis_settings())
        return self._pool

    async def enqueue(self, job_name: str, payload: dict[str, Any]) -> None:
        try:
            pool = await self._get_pool()
            await pool.enqueue_job(job_name, payload)
        except Exception as e:
            log.error("notification_enqueue_failed", job=job_name, error=str(e))

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


@lru_cache
def get_notification_queue() -> NotificationQueue:
    if get_settings().notification_backend == "arq":
        return ArqNotificationQueue()
    return LocalNotificationQueue()
