"""Shared FastAPI dependencies."""

import uuid

from fastapi import Request

from stshield.core.logging import RequestContext


async def get_request_context(request: Request) -> RequestContext:
    """Dependency: request-scoped correlation context for the flows."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    client_ip = request.client.host if request.client else None
    return RequestContext(request_id=request_id, client_ip=client_ip)
