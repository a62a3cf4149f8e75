"""Configuration management for the tenant work-order escalation service."""

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation."""

    # Application
    APP_NAME: str = "Tenant Work Order Escalation"
    VERSION: str = "0.1.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment")

    # API Configuration
    API_V1_STR: str = "/api/v1"
    HOST: str = Field(default="0.0.0.0", description="Host to bind")
    PORT: int = Field(default=8000, description="Port to bind")

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./tenant_escalation.db",
        description="Database connection URL"
    )
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL statements")

    # SMTP Configuration
    SMTP_HOST: str = Field(default="", description="SMTP server host")
    SMTP_PORT: int = Field(default=587, description="SMTP server port")
    SMTP_USER: str = Field(default="", description="SMTP username")
    SMTP_PASS: str = Field(default="", description="SMTP password")
    SMTP_FROM: str = Field(
        default="noreply@building-management.local",
        description="Envelope and header from address"
    )
    SMTP_USE_TLS: bool = Field(default=True, description="Issue STARTTLS before login")
    SMTP_TIMEOUT_SECONDS: float = Field(default=30.0, description="SMTP socket timeout")
    DEFAULT_FROM_LABEL: str = Field(
        default="Building Management",
        description="Sender display name when the building has no name"
    )

    # Escalation policy
    ESCALATION_REMINDER_INTERVAL_DAYS: int = Field(
        default=3,
        description="Whole days between consecutive escalation notices"
    )
    ESCALATION_MAX_REMINDERS: int = Field(
        default=3,
        description="Reminders sent to the managing agent before the owner is notified"
    )

    # Escalation cycle
    ESCALATION_MAX_CONCURRENCY: int = Field(
        default=5,
        description="Work orders processed concurrently within one cycle"
    )
    ESCALATION_CYCLE_TIMEOUT_SECONDS: float = Field(
        default=300.0,
        description="Overall deadline for one escalation cycle"
    )
    ESCALATION_FETCH_ATTEMPTS: int = Field(
        default=3,
        description="Attempts to load the candidate set before the cycle fails"
    )
    ESCALATION_CONDITIONAL_WRITES: bool = Field(
        default=False,
        description="Guard write-back with a compare-and-swap on the escalation state"
    )

    # Scheduling
    ENABLE_ESCALATION: bool = Field(
        default=True,
        description="Run the escalation cycle on a schedule inside the API process"
    )
    ESCALATION_CRON_HOUR: int = Field(default=6, description="Hour of the daily run (UTC)")
    ESCALATION_CRON_MINUTE: int = Field(default=0, description="Minute of the daily run")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    @validator(
        "ESCALATION_REMINDER_INTERVAL_DAYS",
        "ESCALATION_MAX_CONCURRENCY",
        "ESCALATION_FETCH_ATTEMPTS",
    )
    def validate_positive(cls, v: int) -> int:
        """Reject zero or negative limits."""
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @validator("ESCALATION_MAX_REMINDERS")
    def validate_max_reminders(cls, v: int) -> int:
        """Allow zero reminders (straight to owner) but not negative."""
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @validator("ESCALATION_CYCLE_TIMEOUT_SECONDS")
    def validate_timeout(cls, v: float) -> float:
        """Timeouts must be positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v: str) -> str:
        """Normalise the log level name."""
        return v.upper()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
