# backend/app/middleware/request_id.py
from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# ids from gateways / M-Pesa callbacks are copied into log lines verbatim
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
org_slug_ctx: ContextVar[Optional[str]] = ContextVar("org_slug", default=None)


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


def get_org_slug() -> Optional[str]:
    return org_slug_ctx.get()


def inbound_request_id(request: Request) -> str:
    """Caller's id when it is short and printable, else a fresh uuid4."""
    raw = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if raw and _SAFE_ID.match(raw):
        return raw
    return uuid.uuid4().hex


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Binds the request id and tenant org slug for the duration of a request.

    Both are readable from any log call through the ContextVars above; the
    id is also put on request.state for the access log and echoed back.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = inbound_request_id(request)
        request.state.request_id = rid

        rid_token = request_id_ctx.set(rid)
        org_token = org_slug_ctx.set(request.headers.get("X-Org-Slug") or None)
        try:
            response = await call_next(request)
        finally:
            org_slug_ctx.reset(org_token)
            request_id_ctx.reset(rid_token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
