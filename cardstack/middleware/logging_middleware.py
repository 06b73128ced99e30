"""Request/response logging middleware for FastAPI."""

import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from cardstack.core.logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with a correlation id and its duration."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Honour an upstream correlation id when the proxy provides one
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        start_time = time.perf_counter()
        logger.info(
            f"{request.method} {request.url.path} started",
            extra={
                "extra_data": {
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "client_host": request.client.host if request.client else None,
                }
            },
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"{request.method} {request.url.path} failed",
                extra={
                    "extra_data": {
                        "request_id": request_id,
                        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                        "error": str(e),
                    }
                },
                exc_info=True,
            )
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        log_method = logger.warning if response.status_code >= 400 else logger.info
        log_method(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={
                "extra_data": {
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            },
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
