# limsrag/api/middleware/log_context.py

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import time
import logging

logger = logging.getLogger("LimsRAG")


class LogContextMiddleware(BaseHTTPMiddleware):
    """One log line per request, tagged with the request id"""

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        request_id = getattr(request.state, "request_id", "-")
        client = request.client.host if request.client else "-"
        response.headers["X-Process-Time"] = f"{duration:.3f}"

        # 5xx means the generator or the pipeline failed
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            f"[{request_id}] {client} {request.method} {request.url.path} "
            f"{response.status_code} {duration:.3f}s"
        )

        return response
