import os
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Test configuration; must be set before stshield settings are first loaded
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "test_razorpay_secret")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("SENDER_EMAIL", "noreply@studentshield.test")
os.environ.setdefault("COMPANY_EMAIL", "team@studentshield.test")
os.environ.setdefault("BREVO_API_KEY", "test-brevo-key")
os.environ.setdefault("ORDER_CACHE_BACKEND", "memory")
os.environ.setdefault("POLICY_STORE_BACKEND", "memory")
os.environ.setdefault("NOTIFICATION_BACKEND", "local")

from stshield.cache.memory import MemoryOrderCache  # noqa: E402
from stshield.policy_store.memory import MemoryPolicyStore  # noqa: E402
from stshield.services.email import EmailError, EmailMessage, EmailSender  # noqa: E402
from stshield.services.notifications import LocalNotificationQueue  # noqa: E402
from stshield.services.razorpay_gateway import GatewayError, PaymentProvider  # noqa: E402

SECRET = os.environ["RAZORPAY_KEY_SECRET"]
ADMIN_KEY = os.environ["ADMIN_API_KEY"]


class FakeProvider(PaymentProvider):
    """In-memory Razorpay: orders get sequential ids, payments are registered by tests."""

    def __init__(self) -> None:
        self.orders: list[dict[str, Any]] = []
        self.payments: dict[str, int] = {}
        self.fail_create = False
        self.fail_fetch = False
        self.fetch_calls: list[str] = []

    async def create_order(self, amount: int, currency: str) -> dict[str, Any]:
        if self.fail_create:
            raise GatewayError("order create failed: connection reset")
        order = {"id": f"order_test{len(self.orders) + 1}", "amount": amount, "currency": currency}
        self.orders.append(order)
        return order

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        self.fetch_calls.append(payment_id)
        if self.fail_fetch or payment_id not in self.payments:
            raise GatewayError(f"payment fetch failed: {payment_id} not found")
        return {"id": payment_id, "amount": self.payments[payment_id], "status": "captured"}


class FakeEmailSender(EmailSender):
    def __init__(self, fail_for: set[str] | None = None, transient_failures: int = 0) -> None:
        self.sent: list[EmailMessage] = []
        self.attempts = 0
        self.fail_for = fail_for or set()
        self.transient_failures = transient_failures

    async def send(self, message: EmailMessage) -> str:
        self.attempts += 1
        if message.to_email in self.fail_for:
            raise EmailError(f"Brevo API error: 400 - invalid recipient {message.to_email}")
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise EmailError("Brevo API error: 503 - unavailable")
        self.sent.append(message)
        return f"<msg-{len(self.sent)}@brevo>"

    def subjects(self) -> list[str]:
        return [m.subject for m in self.sent]


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def order_cache() -> MemoryOrderCache:
    return MemoryOrderCache(ttl_seconds=3600)


@pytest.fixture
def policy_store() -> MemoryPolicyStore:
    return MemoryPolicyStore()


@pytest.fixture
def notification_queue(email_sender: FakeEmailSender) -> LocalNotificationQueue:
    return LocalNotificationQueue(sender=email_sender, wait_multiplier=0)


@pytest.fixture
def storage(tmp_path):
    from stshield.storage.local import LocalStorage
    return LocalStorage(tmp_path / "storage")


@pytest_asyncio.fixture
async def client(
    provider, order_cache, policy_store, notification_queue, storage,
) -> AsyncGenerator[AsyncClient, None]:
    from stshield.cache.base import get_order_cache
    from stshield.main import app
    from stshield.policy_store.base import get_policy_store
    from stshield.services.notifications import get_notification_queue
    from stshield.services.razorpay_gateway import get_payment_provider
    from stshield.storage.base import get_storage

    app.dependency_overrides[get_payment_provider] = lambda: provider
    app.dependency_overrides[get_order_cache] = lambda: order_cache
    app.dependency_overrides[get_policy_store] = lambda: policy_store
    app.dependency_overrides[get_notification_queue] = lambda: notification_queue
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
