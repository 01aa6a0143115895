"""
nanoedit/middleware/request_logger.py - Request ID and logging middleware
"""

import time
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Clients hit this every couple of seconds while a job runs
STATUS_POLL_PATH = "/api/generate-image/task-status"


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Add request ID and log requests"""

    async def dispatch(self, request: Request, call_next):
        # Reuse an ID assigned further out, or the caller's
        request_id = (
            getattr(request.state, "request_id", None)
            or request.headers.get("x-request-id")
            or str(uuid.uuid4())
        )
        request.state.request_id = request_id

        start_time = time.time()
        extra = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
        context = {"request_id": request_id}

        # Status polls carry the job ids; log them quietly
        is_poll = request.url.path == STATUS_POLL_PATH
        if is_poll:
            context["external_task_id"] = request.query_params.get("taskId")
            context["task_id"] = request.query_params.get("recordNo")
        level = logging.DEBUG if is_poll else logging.INFO

        logger.log(
            level, "Request started", extra={**context, "extra": extra}
        )

        # Process request
        response = await call_next(request)

        duration = time.time() - start_time
        extra["duration_ms"] = round(duration * 1000, 2)
        extra["status_code"] = response.status_code

        # Failed polls are worth seeing at the default level
        if response.status_code >= 400:
            level = logging.INFO
        logger.log(
            level, "Request completed", extra={**context, "extra": extra}
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response
