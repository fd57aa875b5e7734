"""
FastAPI middleware for request tracing.

Every request gets a short request id, bound into the structlog
context together with the marketplace session id when the path
carries one, so store warnings can be correlated to a session.
"""

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import bind_context, clear_context, get_logger


logger = get_logger(__name__)

_SESSION_PATH = re.compile(r"/sessions/(?P<session_id>[^/]+)")


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Adds X-Request-ID, binds log context and logs request timing.

    Usage:
        app = FastAPI()
        app.add_middleware(RequestTracingMiddleware)
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:8])

        bind_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        match = _SESSION_PATH.search(request.url.path)
        if match:
            bind_context(session_id=match.group("session_id"))

        start_time = time.perf_counter()

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Request failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2),
            )
            raise

        finally:
            clear_context()
