"""
Correlation ID propagation.

Both HTTP services tag every request with a correlation ID so that a single
weather lookup can be followed across the consuming service, the outbound
client and the tool server. The ID is taken from the first matching inbound
header (or generated), kept in a ContextVar for the lifetime of the request,
echoed back on the response, and forwarded by the outbound client.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "x-correlation-id"

# Checked in order; the first one present wins.
INBOUND_HEADERS = (CORRELATION_HEADER, "request-id", "x-request-id", "x-ms-request-id")

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(value: str | None):
    """Set the current correlation ID and return the token to reset it with."""
    return _correlation_id.set(value)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


def correlation_id_from_headers(headers) -> str:
    for name in INBOUND_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that scopes a correlation ID to each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = correlation_id_from_headers(request.headers)
        token = set_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
