"""Request ID middleware.

Adds a request ID to each incoming request so a single proxy call can be
followed across log lines and correlated with the response.
"""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from marketgate.app.core.logging import bind_log_context, clear_log_context

# Upper bound on accepted client-supplied ids
MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to every request and response.

    The ID is taken from the ``X-Request-ID`` header when present and sane,
    generated as a UUID otherwise, stored on ``request.state``, bound into the
    log context and echoed back in the response header.
    """

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(self.header_name, "").strip()
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        clear_log_context()
        bind_log_context(request_id=request_id)

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


def get_request_id(request: Request) -> str:
    """Get request ID from request state."""
    return getattr(request.state, "request_id", "unknown")
