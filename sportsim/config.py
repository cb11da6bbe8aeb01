"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (credential store + user directory)
    DATABASE_URL: str = "sqlite:///./sportsim.db"

    # API Security
    API_KEY: str = ""  # Optional API key for admin endpoints
    API_KEY_HEADER: str = "X-API-Key"
    RATE_LIMIT_PER_MINUTE: str = "30/minute"

    # ═══════════════════════════════════════════════════════════════
    # Oracle (Google Gemini)
    # ═══════════════════════════════════════════════════════════════
    GEMINI_API_KEY: str = ""  # Fallback when the credential store holds no key
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GEMINI_MODEL: str = "gemini-3-flash-preview"
    GEMINI_VAR_MODEL: str = "gemini-3-pro-preview"  # Refereeing analysis needs the larger model
    GEMINI_MAX_TOKENS: int = 8192
    ORACLE_TIMEOUT_SECONDS: int = 120
    ORACLE_TEMPERATURE: float = 0.1
    VAR_TEMPERATURE: float = 0.2

    # Request queue + retry (rate-limit windows are minutes-scale)
    SCHEDULER_DELAY_SECONDS: float = 1.5
    RETRY_ATTEMPTS: int = 3
    RETRY_INITIAL_BACKOFF_SECONDS: float = 2.0
    RETRY_RATE_LIMIT_PENALTY_SECONDS: float = 70.0

    # Batch chunking
    BATCH_CHUNK_SIZE: int = 3
    BATCH_CHUNK_PAUSE_SECONDS: float = 2.0
    RESULTS_CHUNK_SIZE: int = 5
    RESULTS_CHUNK_PAUSE_SECONDS: float = 3.0

    # Slip pricing (Loteca: simple bet = 1.50, minimum ticket = 3.00)
    SLIP_BASE_PRICE: float = 1.50
    SLIP_MIN_TOTAL: float = 3.00

    # User directory
    ALLOWED_INVITE_CODES: str = ""  # Comma-separated; empty = open registration
    USER_MIN_PASSWORD_LENGTH: int = 4

    # Error tracking
    SENTRY_DSN: str = ""
    SENTRY_TRACES_SAMPLE_RATE: float = 0.05
    ENVIRONMENT: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def parse_invite_codes(raw: str) -> list[str]:
    """Split the ALLOWED_INVITE_CODES env value into a clean list."""
    return [code.strip() for code in (raw or "").split(",") if code.strip()]
