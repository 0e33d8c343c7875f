"""Razorpay client wrapper: order creation and authoritative payment lookup."""

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

import razorpay
from fastapi.concurrency import run_in_threadpool

from stshield.core.config import get_settings
from stshield.core.logging import get_logger

log = get_logger(__name__)


class GatewayError(Exception):
    """Provider call failed: network, bad request, unknown payment."""


class PaymentProvider(ABC):
    @abstractmethod
    async def create_order(self, amount: int, currency: str) -> dict[str, Any]:
        """Create a provider order; returned dict has at least "id"."""
        ...

    @abstractmethod
    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        """Return provider payment entity; "amount" is in minor units."""
        ...


class RazorpayGateway(PaymentProvider):
    def __init__(self, key_id: str, key_secret: str) -> None:
        self._client = razorpay.Client(auth=(key_id, key_secret))

    async def create_order(self, amount: int, currency: str) -> dict[str, Any]:
        try:
            # SDK is blocking (requests); keep it off the event loop
            order = await run_in_threadpool(self._client.order.create, {"amount": amount, "currency": currency})
        except Exception as e:
            raise GatewayError(f"order create failed: {e}") from e
        if not order or not order.get("id"):
            raise GatewayError("order create returned no id")
        return order

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        try:
            payment = await run_in_threadpool(self._client.payment.fetch, payment_id)
        except Exception as e:
            raise GatewayError(f"payment fetch failed: {e}") from e
        if not payment or "amount" not in payment:
            raise GatewayError("payment fetch returned no amount")
        return payment


@lru_cache
def _razorpay_gateway(key_id: str, key_secret: str) -> RazorpayGateway:
    log.info("razorpay_initialized")
    return RazorpayGateway(key_id, key_secret)


def get_payment_provider() -> PaymentProvider | None:
    """FastAPI dependency; None when credentials are missing (payments disabled)."""
    settings = get_settings()
    if not settings.razorpay_configured:
        return None
    return _razorpay_gateway(settings.razorpay_key_id, settings.razorpay_key_secret)
