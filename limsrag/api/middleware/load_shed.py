# limsrag/api/middleware/load_shed.py

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("LimsRAG")


class LoadSheddingMiddleware(BaseHTTPMiddleware):
    """Reject requests beyond max_inflight instead of queueing them"""

    def __init__(self, app, max_inflight: int = 8, retry_after: int = 1):
        super().__init__(app)
        self._inflight = 0
        self._max = max_inflight
        self._retry_after = retry_after

    @property
    def inflight(self) -> int:
        return self._inflight

    async def dispatch(self, request: Request, call_next):
        if self._inflight >= self._max:
            logger.warning(
                f"Shedding {request.method} {request.url.path}: "
                f"{self._inflight}/{self._max} requests in flight"
            )
            return JSONResponse(
                status_code=503,
                headers={"Retry-After": str(self._retry_after)},
                content={
                    "error": "Server busy",
                    "message": "Too many concurrent questions, retry shortly"
                }
            )

        self._inflight += 1
        try:
            return await call_next(request)
        finally:
            self._inflight -= 1
