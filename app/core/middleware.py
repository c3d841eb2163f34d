import logging
import time
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import request_id_var

logger = logging.getLogger("http")


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Propagates X-Request-Id and writes one http_request log line per request."""

    async def dispatch(self, request: Request, call_next):
        header = settings.request_id_header
        request_id = request.headers.get(header) or uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[header] = request_id
        logger.info(
            "http_request",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response
