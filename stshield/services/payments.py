"""Razorpay order creation and payment verification -> policy issue."""

from typing import Any

from stshield.cache.base import PendingOrderCache
from stshield.core.config import get_settings
from stshield.core.exceptions import (
    AmountMismatchError,
    InvalidPlanError,
    InvalidSignatureError,
    PolicyIdCollisionError,
    PolicyPersistenceError,
    ProviderError,
    ServiceUnavailableError,
    UnknownOrderError,
    ValidationError,
)
from stshield.core.logging import RequestContext
from stshield.core.security import generate_policy_number, verify_payment_signature
from stshield.models.policy import PolicyRecord, utcnow
from stshield.policy_store.base import PolicyExistsError, PolicyStore
from stshield.services import pricing
from stshield.services.email import customer_from_user_data
from stshield.services.notifications import JOB_AMOUNT_MISMATCH, JOB_POLICY_CREATED, NotificationQueue
from stshield.services.razorpay_gateway import GatewayError, PaymentProvider

PROVIDER_NOT_CONFIGURED = "Payment service not available - Razorpay not configured"


def _short(sig: str | None) -> str:
    return f"{sig[:10]}..." if sig else ""


async def create_order(
    plan_type: str | None,
    provider: PaymentProvider | None,
    cache: PendingOrderCache,
    ctx: RequestContext,
) -> dict[str, Any]:
    """Create a provider order at the server-side plan price and remember the price for verification."""
    try:
        amount = pricing.resolve_price(plan_type)
    except InvalidPlanError:
        ctx.log.error("create_order_invalid_plan", plan_type=plan_type)
        raise
    if provider is None:
        ctx.log.error("create_order_provider_not_configured")
        raise ServiceUnavailableError(PROVIDER_NOT_CONFIGURED)
    currency = get_settings().order_currency
    try:
        order = await provider.create_order(amount, currency)
    except GatewayError as e:
        ctx.log.error("create_order_failed", plan_type=plan_type, error=str(e))
        raise ProviderError("Could not create order") from e
    order_id = order["id"]
    await cache.put(order_id, amount)
    ctx.log.info("order_created", order_id=order_id, amount=amount, currency=currency)
    return {"id": order_id}


async def verify_payment(
    order_id: str | None,
    payment_id: str | None,
    signature: str | None,
    user_data: dict[str, Any] | None,
    *,
    provider: PaymentProvider | None,
    cache: PendingOrderCache,
    store: PolicyStore,
    notifications: NotificationQueue,
    ctx: RequestContext,
) -> dict[str, Any]:
    """
    Verify a checkout callback and issue the policy.

    Order: input -> cached order -> provider amount -> amount equality ->
    signature -> persist -> queue emails. Nothing is written unless both the
    amount and the signature check out.
    """
    if not order_id or not payment_id or not signature:
        ctx.log.error("verify_missing_fields", order_id=order_id, payment_id=payment_id)
        raise ValidationError("Missing required payment fields")
    if not user_data:
        ctx.log.error("verify_missing_user_data", order_id=order_id)
        raise ValidationError("Missing user data")

    settings = get_settings()
    if provider is None or not settings.razorpay_key_secret:
        ctx.log.error("verify_provider_not_configured", order_id=order_id)
        raise ServiceUnavailableError(PROVIDER_NOT_CONFIGURED)

    expected_amount = await cache.get(order_id)
    if expected_amount is None:
        ctx.log.warning("verify_unknown_order", order_id=order_id, payment_id=payment_id)
        raise UnknownOrderError()

    try:
        payment = await provider.fetch_payment(payment_id)
    except GatewayError as e:
        ctx.log.error("verify_fetch_payment_failed", order_id=order_id, payment_id=payment_id, error=str(e))
        raise ProviderError("Could not verify payment amount") from e

    actual_amount = payment.get("amount")
    if not isinstance(actual_amount, int) or actual_amount != expected_amount:
        ctx.log.error(
            "verify_amount_mismatch",
            order_id=order_id,
            payment_id=payment_id,
            expected_amount=expected_amount,
            actual_amount=actual_amount,
        )
        await notifications.enqueue(JOB_AMOUNT_MISMATCH, {
            "request_id": ctx.request_id,
            "customer": customer_from_user_data(user_data),
            "alert": {
                "order_id": order_id,
                "payment_id": payment_id,
                "plan_name": pricing.plan_name(user_data.get("planType")),
                "expected_amount": expected_amount,
                "actual_amount": actual_amount,
                "date": utcnow().strftime("%d %b %Y"),
            },
        })
        raise AmountMismatchError()

    if not verify_payment_signature(order_id, payment_id, settings.razorpay_key_secret, signature):
        ctx.log.warning(
            "verify_invalid_signature",
            order_id=order_id,
            payment_id=payment_id,
            received_signature=_short(signature),
        )
        raise InvalidSignatureError()
    ctx.log.info("verify_signature_ok", order_id=order_id, payment_id=payment_id)

    record = PolicyRecord(
        policy_id=generate_policy_number(),
        order_id=order_id,
        payment_id=payment_id,
        user_data=user_data,
        amount_paise=expected_amount,
    )
    try:
        await store.put_if_absent(record)
    except PolicyExistsError as e:
        ctx.log.error("policy_id_collision", policy_number=record.policy_id, order_id=order_id, payment_id=payment_id)
        raise PolicyIdCollisionError() from e
    except Exception as e:
        ctx.log.exception(
            "policy_save_failed",
            policy_number=record.policy_id,
            order_id=order_id,
            payment_id=payment_id,
            error=str(e),
        )
        raise PolicyPersistenceError() from e
    ctx.log.info(
        "policy_saved",
        policy_number=record.policy_id,
        order_id=order_id,
        payment_id=payment_id,
        user_email=user_data.get("email") or "unknown",
    )

    await notifications.enqueue(JOB_POLICY_CREATED, {
        "request_id": ctx.request_id,
        "customer": customer_from_user_data(user_data),
        "policy": {
            "policy_number": record.policy_id,
            "plan_name": pricing.plan_name(user_data.get("planType")),
            "amount": pricing.format_rupees(expected_amount),
            "order_id": order_id,
            "payment_id": payment_id,
            "date": record.timestamp.strftime("%d %b %Y"),
        },
    })

    return {
        "success": True,
        "message": "Payment captured and policy created",
        "policyNumber": record.policy_id,
    }
