from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
import uuid
import structlog
from opentelemetry import trace


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Binds an X-Request-ID to every log line emitted while serving a request
    and echoes it on the response. A client-supplied id is trusted as-is;
    it is for correlation only.
    """
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("request.id", request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
