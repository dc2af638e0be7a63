from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from common_core.logging_setup import request_id_ctx

log = logging.getLogger("firedispatch.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id (client supplied or generated) and logs its outcome."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex
        request.state.request_id = rid
        token = request_id_ctx.set(rid)
        started = time.perf_counter()
        try:
            resp: Response = await call_next(request)
            resp.headers["X-Request-Id"] = rid
            log.info(
                "request_done",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": resp.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
            return resp
        finally:
            request_id_ctx.reset(token)
