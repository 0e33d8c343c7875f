from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from stshield.cache.base import PendingOrderCache, get_order_cache
from stshield.core.logging import RequestContext
from stshield.deps import get_request_context
from stshield.policy_store.base import PolicyStore, get_policy_store
from stshield.services import payments as payments_service
from stshield.services.notifications import NotificationQueue, get_notification_queue
from stshield.services.razorpay_gateway import PaymentProvider, get_payment_provider

router = APIRouter()


class CreateOrderRequest(BaseModel):
    # Any client-sent amount is ignored; price comes from the plan table
    model_config = ConfigDict(extra="ignore")

    planType: str | None = None


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    razorpay_signature: str | None = None
    user_data: dict[str, Any] | None = None


@router.post("/create-order")
async def create_order(
    body: CreateOrderRequest,
    ctx: RequestContext = Depends(get_request_context),
    provider: PaymentProvider | None = Depends(get_payment_provider),
    cache: PendingOrderCache = Depends(get_order_cache),
):
    """Create Razorpay order for a plan; frontend opens checkout with the returned id."""
    return await payments_service.create_order(body.planType, provider, cache, ctx)


@router.post("/verify-payment")
async def verify_payment(
    body: VerifyPaymentRequest,
    ctx: RequestContext = Depends(get_request_context),
    provider: PaymentProvider | None = Depends(get_payment_provider),
    cache: PendingOrderCache = Depends(get_order_cache),
    store: PolicyStore = Depends(get_policy_store),
    notifications: NotificationQueue = Depends(get_notification_queue),
):
    """Verify checkout callback (amount + signature) and issue the policy."""
    return await payments_service.verify_payment(
        body.razorpay_order_id,
        body.razorpay_payment_id,
        body.razorpay_signature,
        body.user_data,
        provider=provider,
        cache=cache,
        store=store,
        notifications=notifications,
        ctx=ctx,
    )
