"""Gateway configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables (prefixed with MAILIN_) can be loaded from a .env file.
"""

from dataclasses import dataclass
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables.

    All settings have sensible defaults for local development.

    Environment Variables:
        MAILIN_HOST: Bind address for the SMTP listener
        MAILIN_PORT: TCP port to listen on (default 2500)
        MAILIN_TMP: Staging directory, created at startup if absent
        MAILIN_WEBHOOK: URL receiving the parsed messages
        MAILIN_WEBHOOK_FIELD: Form field carrying the serialized envelope
        MAILIN_WEBHOOK_TIMEOUT: HTTP timeout for the single delivery attempt
        MAILIN_SMTP_BANNER: Identity announced in the SMTP greeting
        MAILIN_SMTP_MAX_SIZE: Maximum accepted message size in bytes
        MAILIN_LANGUAGE_CANDIDATES: Candidates requested from the language detector
        MAILIN_NORMALIZE_AFTER_AUTH: Wait for both verdicts before parsing
        MAILIN_LOG_LEVEL: Logging level (default INFO)
        MAILIN_LOG_JSON: Emit JSON log lines (default True)
        MAILIN_METRICS_PORT: Prometheus exposition port (0 disables)
        MAILIN_SHUTDOWN_GRACE_SECONDS: Time allowed for in-flight pipelines on shutdown
    """

    # SMTP listener
    HOST: str = "0.0.0.0"
    PORT: int = 2500
    SMTP_BANNER: str = "Mailin Smtp Server"
    SMTP_MAX_SIZE: int = 26_214_400  # 25 MB

    # Staging
    TMP: str = ".tmp"

    # Webhook delivery
    WEBHOOK: str = "http://localhost:3000/webhook"
    WEBHOOK_FIELD: str = "mailinMsg"
    WEBHOOK_TIMEOUT: float = 30.0

    # Pipeline
    LANGUAGE_CANDIDATES: int = 2
    NORMALIZE_AFTER_AUTH: bool = False

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    METRICS_PORT: int = 0

    SHUTDOWN_GRACE_SECONDS: float = 30.0

    class Config:
        env_prefix = "MAILIN_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()


@dataclass(frozen=True)
class PipelineConfig:
    """Process-wide pipeline parameters, fixed once at startup.

    Attributes:
        validator_available: Whether the DKIM/SPF runtime was found at startup.
            When False every session gets failing verdicts without calling it.
        language_candidates: How many ranked candidates to ask the detector for
        normalize_after_auth: Schedule parsing only after both verdicts are in
    """
    validator_available: bool
    language_candidates: int = 2
    normalize_after_auth: bool = False

    @classmethod
    def from_settings(cls, settings: Settings, validator_available: bool) -> "PipelineConfig":
        return cls(
            validator_available=validator_available,
            language_candidates=settings.LANGUAGE_CANDIDATES,
            normalize_after_auth=settings.NORMALIZE_AFTER_AUTH,
        )
