"""ASGI middleware: request correlation, access logging and body size guard."""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from protrack.core.config import settings
from protrack.core.logging import platform_ctx_var, request_id_ctx_var, user_id_ctx_var

# Statuses an operator can trigger by normal use but which a supervisor
# may want to see: cross-platform denials, write conflicts, rate limiting.
_WARN_STATUSES = frozenset({403, 409, 429})


def _log_level(status_code: int) -> str:
    if status_code >= 500:
        return "ERROR"
    if status_code in _WARN_STATUSES:
        return "WARNING"
    return "INFO"


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Tags every log record of a request with its id and writes one access line."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        tokens = (
            request_id_ctx_var.set(request_id),
            user_id_ctx_var.set("-"),
            platform_ctx_var.set(request.query_params.get("platform", "-")),
        )
        started = time.perf_counter()
        status_code = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            response.headers.setdefault("X-Request-ID", request_id)
            return response
        finally:
            logger.bind(
                method=request.method,
                path=request.url.path,
                status=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                idempotency_key=request.headers.get("Idempotency-Key"),
            ).log(_log_level(status_code), "request_completed")
            for var, token in zip((request_id_ctx_var, user_id_ctx_var, platform_ctx_var), tokens):
                var.reset(token)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests whose declared body exceeds ``MAX_REQUEST_BYTES``."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > settings.MAX_REQUEST_BYTES:
            logger.bind(path=request.url.path, size=int(declared)).warning("request_too_large")
            return JSONResponse(
                status_code=413,
                content={"detail": "Request entity too large"},
            )
        return await call_next(request)
