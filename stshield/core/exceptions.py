from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        extra: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        # Top-level response fields some clients rely on (e.g. policyNumber)
        self.extra = extra or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class ValidationError(AppError):
    def __init__(self, message: str = "Validation error", details: dict[str, Any] | None = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class InvalidPlanError(AppError):
    def __init__(self, message: str = "Invalid plan type"):
        super().__init__(message, code="INVALID_PLAN", status_code=status.HTTP_400_BAD_REQUEST)


class UnknownOrderError(AppError):
    def __init__(self, message: str = "Invalid order ID"):
        super().__init__(message, code="UNKNOWN_ORDER", status_code=status.HTTP_400_BAD_REQUEST)


class AmountMismatchError(AppError):
    def __init__(
        self,
        message: str = "Policy creation failed: Trusted payment not received. Please contact support.",
    ):
        super().__init__(message, code="AMOUNT_MISMATCH", status_code=status.HTTP_400_BAD_REQUEST)


class InvalidSignatureError(AppError):
    def __init__(self, message: str = "Payment verification failed: Invalid signature"):
        super().__init__(message, code="INVALID_SIGNATURE", status_code=status.HTTP_400_BAD_REQUEST)


class ProviderError(AppError):
    """Payment provider call failed (network, not found, API error)."""

    def __init__(self, message: str = "Payment provider error"):
        super().__init__(message, code="PROVIDER_ERROR", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class ServiceUnavailableError(AppError):
    def __init__(self, message: str = "Service unavailable"):
        super().__init__(message, code="SERVICE_UNAVAILABLE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


POLICY_NOT_CREATED_MESSAGE = "Payment captured but failed to create policy. Please contact support."


class PolicyPersistenceError(AppError):
    """Money was captured but no policy record exists; the user must contact support."""

    def __init__(self, message: str = POLICY_NOT_CREATED_MESSAGE, code: str = "PERSISTENCE_ERROR"):
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            extra={"policyNumber": None},
        )


class PolicyIdCollisionError(PolicyPersistenceError):
    def __init__(self, message: str = POLICY_NOT_CREATED_MESSAGE):
        super().__init__(message, code="POLICY_ID_COLLISION")


def _body(request: Request, message: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "message": message,
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return body


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = _body(request, exc.message, exc.code, exc.details)
    body.update(exc.extra)
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = _body(request, "Validation error", "VALIDATION_ERROR", {"errors": jsonable_encoder(exc.errors())})
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from stshield.core.config import get_settings
    from stshield.core.logging import get_logger
    get_logger(__name__).exception(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        exc_info=exc,
    )
    details = {"error": str(exc)} if get_settings().debug else None
    body = _body(request, "Internal server error", "INTERNAL_ERROR", details)
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
