# backend/app/middleware/structured_logging.py
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("rentledger.request")


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One access line per request:
      request_id, org_slug, user_id, method, path, status_code, latency_ms

    Must sit inside RequestIDMiddleware so request.state.request_id is set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()

        org_slug = request.headers.get("X-Org-Slug")
        user_id = request.headers.get("X-User-Id") or request.headers.get("X-User-Email")

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            request_id: Optional[str] = getattr(request.state, "request_id", None)
            latency_ms = int((time.time() - t0) * 1000)
            log.info(
                "http_request",
                extra={
                    "user_id": user_id,
                    "http": {
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "query": str(request.url.query) if request.url.query else "",
                        "status_code": status_code,
                        "latency_ms": latency_ms,
                        "org_slug": org_slug,
                    },
                },
            )
