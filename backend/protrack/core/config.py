"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings exposed via dependency injection throughout the app."""

    # Read .env with BOM tolerance; case-sensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=True,
    )

    APP_NAME: str = "ProTrack API"
    ENV: str = "dev"  # dev | staging | prod
    DEBUG: bool = True
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 3235

    # JWT (tokens are issued by the identity provider; we only verify them)
    SECRET_KEY: str  # set via env/.env
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    JWT_ISSUER: str = "protrack-auth"
    JWT_AUDIENCE: str = "protrack-clients"

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # DB
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "protrack"
    DB_PASSWORD: str = ""  # set via env/.env
    DB_NAME: str = "protrack"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ISOLATION_LEVEL: str = "READ COMMITTED"
    DB_RETRY_ATTEMPTS: int = 4
    DB_RETRY_BASE_DELAY: float = 0.05
    DB_RETRY_JITTER: float = 0.025
    IDEMPOTENCY_TTL_MINUTES: int = 5
    INNODB_LOCK_WAIT_TIMEOUT_SEC: int = 10
    SELECT_MAX_EXECUTION_TIME_MS: int = 5000
    DB_NOWAIT_LOCKS: bool = False

    # Redis (optional - cache and realtime events degrade to on-demand reads)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_ENABLED: bool = True
    EVENTS_CHANNEL: str = "protrack:production_logs"
    MONITOR_CACHE_TTL_SEC: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_FILE: str | None = None  # rotated daily when set

    # Production log submissions are small JSON documents.
    MAX_REQUEST_BYTES: int = 256 * 1024
    # Submission rate per client, see protrack.core.rate_limit.limiter for syntax.
    LOG_SUBMIT_RATE: str = "60/minute"

    # Plant floor rules
    PLANT_TIMEZONE: str = "Africa/Casablanca"
    INDUSTRIAL_DAY_START_HOUR: int = Field(default=6, ge=0, le=23)
    LOW_STOCK_THRESHOLD: int = 5
    COMPLETION_TOLERANCE_PCT: int = 98
    HUD_DEFAULT_TARGET_TRUCKS: int = 25

    @property
    def DATABASE_URL(self) -> str:
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )


settings = Settings()
