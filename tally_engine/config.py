"""Configuration management for the tally engine."""
import logging
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service configuration
    SERVICE_NAME: str = "tally-engine"
    API_VERSION: str = "v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Vote weights by voter status
    WEIGHT_VERIFIED: float = 2.0
    WEIGHT_INACTIVE: float = 0.5
    WEIGHT_DEFAULT: float = 1.0

    # Age limits
    VOTER_MIN_AGE: int = 0
    VOTER_MAX_AGE: int = 150
    UPDATE_MIN_AGE: int = 18
    CANDIDATE_MIN_AGE: int = 18

    # Encrypted ballots
    BALLOT_ID_BYTES: int = 8

    # Redis configuration (snapshot store)
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    SNAPSHOT_KEY: str = "tally_engine:snapshot"
    SNAPSHOT_ENABLED: bool = False

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def redis_url(self) -> str:
        """Generate Redis connection URL."""
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging in the service-wide format."""
    level_name = level or ("DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
