"""Rate limiting utilities using SlowAPI."""

import hashlib

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address


def _client_key(request: Request) -> str:
    """Limit per operator when authenticated, per address otherwise."""

    auth = request.headers.get("Authorization")
    if auth:
        return hashlib.sha256(auth.encode()).hexdigest()
    return get_remote_address(request)


limiter = Limiter(key_func=_client_key)


def init_rate_limiter(app: FastAPI) -> None:
    """Attach the rate limiter and exception handler to the FastAPI app."""

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    async def rate_limit_exceeded_handler(request, exc):  # type: ignore[unused-arg]
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many submissions. Please slow down."},
        )

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
