"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    REDIS_URL: Redis connection string
    WHATSAPP_APP_SECRET: Meta app secret used to sign webhook bodies
    WHATSAPP_VERIFY_TOKEN: Token echoed back during webhook verification
    WHATSAPP_ACCESS_TOKEN: Bearer token for the Cloud API
    AVAILABILITY_SERVICE_URL: Slot availability service base URL
    BOOKING_SERVICE_URL: Booking creation service base URL
    ANTHROPIC_API_KEY: Claude API key (NLU, language fallback, intent)
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis Configuration
    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL.

    Format: redis://host:port/db
    Example: redis://localhost:6379/0

    Used for booking sessions and webhook deduplication.
    """

    redis_session_ttl: int = 1800
    """Booking session TTL in seconds (default: 30 minutes idle)."""

    dedup_ttl: int = 86400
    """How long a processed message id is remembered, in seconds.

    Matches the platform retry window (Meta retries for up to 24 hours).
    """

    # WhatsApp Webhook
    whatsapp_app_secret: str = ""
    """App secret used to verify X-Hub-Signature-256.

    If empty, every signed request is rejected (fail closed).
    """

    whatsapp_verify_token: str = ""
    """Token configured in the Meta dashboard for the GET challenge."""

    disable_webhook_validation: bool = False
    """Skip signature checks. Development only.

    Ignored when APP_ENV=production. A warning is logged on every request
    while enabled.
    """

    # WhatsApp Outbound
    whatsapp_api_url: str = "https://graph.facebook.com/v18.0"
    """WhatsApp Cloud API base URL."""

    whatsapp_phone_number_id: str = ""
    """Sender phone number id."""

    whatsapp_access_token: str = ""
    """Bearer token for the Cloud API."""

    # Collaborators
    availability_service_url: str = "http://localhost:8001"
    """Slot availability service base URL."""

    booking_service_url: str = "http://localhost:8001"
    """Booking creation service base URL."""

    external_call_timeout: float = 10.0
    """Upper bound in seconds for any outbound HTTP call."""

    default_salon_id: str = "default"
    """Salon used when the inbound phone number is not mapped to one."""

    # Claude API
    anthropic_api_key: str = ""
    """Anthropic API key. LLM features are skipped when empty."""

    claude_intent_model: str = "claude-3-5-haiku-latest"
    """Fast model for NLU parsing, language fallback and intent scoring."""

    claude_fallback_model: str = "claude-3-5-sonnet-latest"
    """Model used when the primary model call fails."""

    claude_intent_confidence_threshold: float = 0.7
    """Minimum confidence before an LLM classification is trusted."""

    llm_classifier_enabled: bool = False
    """Ask Claude about messages the keyword pass did not recognise."""

    # Localization
    default_language: str = "en"
    """Language used when neither the caller nor the session has one."""

    # Resilience
    circuit_breaker_failure_threshold: int = 5
    """Consecutive failures before a circuit opens."""

    circuit_breaker_recovery_timeout: int = 60
    """Seconds an open circuit waits before a trial call."""

    # Application Environment
    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment.

    Options:
    - development: Local development, verbose logging, debug enabled
    - staging: Pre-production testing environment
    - production: Live production environment, minimal logging
    """

    debug: bool = False
    """Enable debug mode.

    Should be False in production.
    """

    # Application Configuration
    app_name: str = "quick-booking"
    """Application name."""

    host: str = "0.0.0.0"
    """Host to bind the application server."""

    port: int = 8000
    """Port to bind the application server."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load from .env file if it exists
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow REDIS_URL or redis_url
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def webhook_validation_bypassed(self) -> bool:
        """Dev bypass flag, never honoured in production."""
        return self.disable_webhook_validation and not self.is_production


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache so settings are loaded once and reused across the
    application.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from app.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.redis_session_ttl)
        1800
    """
    return Settings()


# Module-level settings instance for easy imports
settings = get_settings()
