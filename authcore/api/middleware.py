"""Middleware for request processing and observability."""

from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID and the client address to every request.

    - Reuses the X-Correlation-Id header when present, otherwise a UUID4
    - Stores it in request.state.correlation_id
    - Binds correlation_id and client_ip to the structlog context so every
      auth event logged during the request carries them
    - Echoes the ID back in the X-Correlation-Id response header
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            correlation_id=correlation_id,
            client_ip=request.client.host if request.client else "",
        )

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
