"""Configuration management for the Excel generation API.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
EXCEL_API_ prefix, or via a .env file in the project root.

Environment Variables:
    EXCEL_API_MAX_FILE_SIZE_MB: Maximum template upload size in MB (default: 10)
    EXCEL_API_SMTP_HOST: SMTP server host (default: smtp.gmail.com)
    EXCEL_API_SMTP_PORT: SMTP server port (default: 587)
    EXCEL_API_SMTP_USE_SSL: Use implicit TLS instead of STARTTLS (default: false)
    EXCEL_API_SMTP_USERNAME: SMTP login, also used as the sender address
    EXCEL_API_SMTP_PASSWORD: SMTP password
    EXCEL_API_SMTP_TIMEOUT_SECONDS: SMTP socket timeout (default: 30)
    EXCEL_API_EMAIL_SENDER_NAME: Sender display name (default: Excel Generator)
    EXCEL_API_LOG_LEVEL: Logging level (default: INFO)
    EXCEL_API_DEBUG: Enable debug mode (default: false)
    EXCEL_API_CORS_ORIGINS: Comma-separated CORS origins
    EXCEL_API_SERVER_HOST: Server bind host (default: 0.0.0.0)
    EXCEL_API_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
from typing import Any

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Sensitive values like the SMTP password use SecretStr to prevent
    accidental logging.

    Example .env file:
        EXCEL_API_SMTP_USERNAME=reports@example.com
        EXCEL_API_SMTP_PASSWORD=app-password
        EXCEL_API_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="EXCEL_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # File Upload Settings
    # =========================================================================

    max_file_size_mb: int = 10
    """Maximum template upload size in megabytes."""

    # =========================================================================
    # Email Settings
    # =========================================================================

    smtp_host: str = "smtp.gmail.com"
    """SMTP server host."""

    smtp_port: int = 587
    """SMTP server port."""

    smtp_use_ssl: bool = False
    """Connect with implicit TLS (SMTP_SSL) instead of upgrading via STARTTLS."""

    smtp_username: str = ""
    """SMTP login. Also used as the From address."""

    smtp_password: SecretStr = SecretStr("")
    """SMTP password."""

    smtp_timeout_seconds: float = 30.0
    """Socket timeout for SMTP connections."""

    email_sender_name: str = "Excel Generator"
    """Display name used in the From header."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Root logging level name, case insensitive."""

    debug: bool = False
    """Enable debug mode with additional error details in responses."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "http://localhost:3000,http://localhost:8000"
    """Allowed CORS origins, comma separated; "*" allows any origin."""

    server_host: str = "0.0.0.0"
    """Interface uvicorn binds to."""

    server_port: int = 8000
    """TCP port uvicorn listens on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the level name and reject unknown levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int) -> int:
        """Upload limit must be between 1 and 500 MB."""
        if not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator("server_port", "smtp_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Port must be between 1 and 65535."""
        if not 1 <= v <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator("smtp_timeout_seconds")
    @classmethod
    def validate_smtp_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"smtp_timeout_seconds must be positive, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_file_size_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins split into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Numeric logging level for ``log_level``."""
        level: int = getattr(logging, self.log_level)
        return level

    @property
    def email_configured(self) -> bool:
        """Whether SMTP credentials are present."""
        return bool(self.smtp_username and self.get_smtp_password())

    def get_smtp_password(self) -> str:
        """Get the SMTP password value.

        Returns:
            The password string. Returns empty string if not set.
        """
        return self.smtp_password.get_secret_value()

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary with sensitive values masked."""
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "smtp_host": self.smtp_host,
            "smtp_port": self.smtp_port,
            "smtp_use_ssl": self.smtp_use_ssl,
            "smtp_username": self.smtp_username,
            "smtp_password": "***" if self.get_smtp_password() else "(not set)",
            "smtp_timeout_seconds": self.smtp_timeout_seconds,
            "email_sender_name": self.email_sender_name,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Validate settings on application startup.

    Emits warnings for configuration that works but is not production-ready.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if not s.email_configured:
        logger.warning(
            "SMTP credentials are not configured. Email delivery will not work. "
            "Set EXCEL_API_SMTP_USERNAME and EXCEL_API_SMTP_PASSWORD."
        )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"max_file_size_mb={s.max_file_size_mb}, smtp_host={s.smtp_host}"
    )


# Module-level settings shared by the app and services
settings = Settings()
