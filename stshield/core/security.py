import hashlib
import hmac
import secrets

from fastapi import Header

from stshield.core.config import get_settings
from stshield.core.exceptions import ServiceUnavailableError, UnauthorizedError

POLICY_NUMBER_PREFIX = "SSST"


def compute_payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of "<order_id>|<payment_id>" keyed by secret."""
    body = f"{order_id}|{payment_id}"
    return hmac.new(
        secret.encode("utf-8"),
        body.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, secret: str, signature: str | None) -> bool:
    if not (order_id and payment_id and secret and signature):
        return False
    expected = compute_payment_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def generate_policy_number() -> str:
    """SSST + 12 uppercase hex chars; the store's not-exists check backs up the randomness."""
    return f"{POLICY_NUMBER_PREFIX}{secrets.token_hex(6).upper()}"


async def require_admin_key(x_admin_key: str | None = Header(default=None, alias="X-Admin-Key")) -> None:
    """Dependency: admin endpoints need X-Admin-Key matching ADMIN_API_KEY."""
    expected = get_settings().admin_api_key
    if not expected:
        raise ServiceUnavailableError("Admin API not configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("Invalid admin key")
