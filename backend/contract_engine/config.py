"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./contracts.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Realtime fan-out (empty REDIS_URL = in-process subscribers only)
    REDIS_URL: str = ""
    NOTIFY_CHANNEL_PREFIX: str = "contracts"
    NOTIFY_TIMEOUT_SECONDS: float = 2.0
    NOTIFY_MAX_PENDING: int = 100  # per-subscriber backlog before events are dropped

    CANCELLATION_REASON_MIN_LENGTH: int = 10
    VERSION_PAGE_SIZE: int = 20
    VERSION_PAGE_SIZE_MAX: int = 100

    class Config:
        env_file = ".env"


settings = Settings()
