"""Application entry point for the ProTrack API service."""

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from protrack.api.routes.analytics import router as analytics_router
from protrack.api.routes.production_logs import router as production_logs_router
from protrack.api.routes.programs import router as programs_router
from protrack.api.routes.users import router as users_router
from protrack.core.cache import close_redis_client, get_redis_client
from protrack.core.config import settings
from protrack.core.db import get_session
from protrack.core.errors import register_error_handlers
from protrack.core.logging import setup_logging
from protrack.core.middleware import BodySizeLimitMiddleware, RequestContextLogMiddleware
from protrack.core.rate_limit import init_rate_limiter

setup_logging()

app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG)

init_rate_limiter(app)
register_error_handlers(app)

app.add_middleware(RequestContextLogMiddleware)


def _cors_origins() -> list[str]:
    if settings.ENV == "prod":
        if not settings.CORS_ALLOWED_ORIGINS:
            raise RuntimeError("CORS_ALLOWED_ORIGINS must be configured for prod")
        return settings.CORS_ALLOWED_ORIGINS
    return settings.CORS_ALLOWED_ORIGINS or ["http://localhost:5173"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "Idempotency-Key",
        "X-Request-ID",
    ],
)

app.add_middleware(BodySizeLimitMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
async def startup_event():
    """Connect to Redis if enabled; without it the API polls and caches in memory."""
    redis_client = await get_redis_client()
    logger.bind(
        env=settings.ENV,
        plant_timezone=settings.PLANT_TIMEZONE,
        realtime=redis_client is not None,
    ).info("api_started")


@app.on_event("shutdown")
async def shutdown_event():
    """Close Redis connection on shutdown."""
    await close_redis_client()


@app.get("/api/healthz", tags=["system"], summary="Liveness probe")
def healthz() -> dict[str, str]:
    """Simple liveness probe that load balancers and monitors can call."""

    return {"status": "ok"}


@app.get("/api/readyz", tags=["system"], summary="Readiness probe")
async def readyz(session: AsyncSession = Depends(get_session)):
    try:
        await session.execute(text("SELECT 1"))
        return {"ready": True}
    except (SQLAlchemyError, OSError):
        raise HTTPException(status_code=503, detail="Database not reachable")


for router in (users_router, programs_router, production_logs_router, analytics_router):
    app.include_router(router, prefix="/api")
