"""
Application configuration using Pydantic Settings.
Loads from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Front Desk Console"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Primary store: "mongo" for MongoDB change streams, "memory" for a single process
    STORE_BACKEND: str = "mongo"
    MONGODB_URL: str = "mongodb://localhost:27017/?replicaSet=rs0"
    DATABASE_NAME: str = "frontdesk"

    # Operator identity for this console
    CLINIC_ID: str = ""
    ASSISTANT_ID: str = ""

    # Secondary record store (history, billing ledger)
    LEDGER_API_URL: str = "http://localhost:5000/api"
    LEDGER_TIMEOUT_SECONDS: float = 10.0
    LEDGER_MAX_ATTEMPTS: int = 2

    # Queue defaults
    DEFAULT_REFERRAL_SOURCE: str = "عام"
    MESSAGE_BACKLOG: int = 10  # most recent doctor messages replayed on subscribe

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
