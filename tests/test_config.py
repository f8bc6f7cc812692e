"""Tests for configuration management module."""

import logging
import os
from unittest.mock import patch

import pytest
from pydantic import SecretStr

from excel_generation_api.config import Settings, validate_settings_on_startup


class TestSettings:
    """Tests for the Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        # File upload defaults
        assert settings.max_file_size_mb == 10

        # Email defaults
        assert settings.smtp_host == "smtp.gmail.com"
        assert settings.smtp_port == 587
        assert settings.smtp_use_ssl is False
        assert settings.smtp_username == ""
        assert settings.get_smtp_password() == ""
        assert settings.smtp_timeout_seconds == 30.0
        assert settings.email_sender_name == "Excel Generator"

        # Logging defaults
        assert settings.log_level == "INFO"
        assert settings.debug is False

        # Server defaults
        assert settings.cors_origins == "http://localhost:3000,http://localhost:8000"
        assert settings.server_host == "0.0.0.0"
        assert settings.server_port == 8000

    def test_environment_variable_prefix(self) -> None:
        """Test that environment variables use EXCEL_API_ prefix."""
        env_vars = {
            "EXCEL_API_MAX_FILE_SIZE_MB": "25",
            "EXCEL_API_SMTP_HOST": "mail.example.com",
            "EXCEL_API_LOG_LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_file_size_mb == 25
        assert settings.smtp_host == "mail.example.com"
        assert settings.log_level == "DEBUG"

    def test_secret_str_for_smtp_password(self) -> None:
        """Test that the SMTP password uses SecretStr."""
        env_vars = {"EXCEL_API_SMTP_PASSWORD": "app-secret"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert isinstance(settings.smtp_password, SecretStr)
        assert settings.get_smtp_password() == "app-secret"
        assert "app-secret" not in str(settings.smtp_password)

    def test_email_configured_requires_username_and_password(self) -> None:
        with patch.dict(
            os.environ, {"EXCEL_API_SMTP_USERNAME": "reports@example.com"}, clear=True
        ):
            assert Settings(_env_file=None).email_configured is False

        env_vars = {
            "EXCEL_API_SMTP_USERNAME": "reports@example.com",
            "EXCEL_API_SMTP_PASSWORD": "app-secret",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            assert Settings(_env_file=None).email_configured is True

    def test_max_file_size_bytes_property(self) -> None:
        """Test max_file_size_bytes computed property."""
        env_vars = {"EXCEL_API_MAX_FILE_SIZE_MB": "10"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_file_size_bytes == 10 * 1024 * 1024

    def test_cors_origins_list_multiple(self) -> None:
        """Test CORS origins list with multiple origins."""
        env_vars = {
            "EXCEL_API_CORS_ORIGINS": "https://example.com, https://api.example.com"
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.cors_origins_list == [
            "https://example.com",
            "https://api.example.com",
        ]

    def test_cors_origins_list_wildcard(self) -> None:
        """Test CORS origins list with wildcard."""
        env_vars = {"EXCEL_API_CORS_ORIGINS": "*"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.cors_origins_list == ["*"]

    def test_log_level_int_property(self) -> None:
        """Test log_level_int computed property."""
        test_cases = [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
        ]

        for level_str, expected_int in test_cases:
            env_vars = {"EXCEL_API_LOG_LEVEL": level_str}
            with patch.dict(os.environ, env_vars, clear=True):
                settings = Settings(_env_file=None)
            assert settings.log_level_int == expected_int, f"Failed for {level_str}"

    def test_to_safe_dict_masks_password(self) -> None:
        """Test to_safe_dict masks sensitive values."""
        env_vars = {
            "EXCEL_API_SMTP_USERNAME": "reports@example.com",
            "EXCEL_API_SMTP_PASSWORD": "app-secret",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        safe_dict = settings.to_safe_dict()

        assert safe_dict["smtp_password"] == "***"
        assert "app-secret" not in str(safe_dict)
        assert safe_dict["smtp_username"] == "reports@example.com"
        assert safe_dict["max_file_size_mb"] == 10

    def test_to_safe_dict_shows_not_set_for_empty_password(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.to_safe_dict()["smtp_password"] == "(not set)"


class TestSettingsValidation:
    """Tests for settings validation."""

    def test_lowercase_log_level_normalized(self) -> None:
        """Test lowercase log levels are normalized to uppercase."""
        env_vars = {"EXCEL_API_LOG_LEVEL": "debug"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)
            assert settings.log_level == "DEBUG"

    def test_invalid_log_level_raises_error(self) -> None:
        """Test invalid log level raises validation error."""
        env_vars = {"EXCEL_API_LOG_LEVEL": "INVALID"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="Invalid log level"),
        ):
            Settings(_env_file=None)

    def test_file_size_must_be_between_1_and_500(self) -> None:
        """Test file size limit validation."""
        for value in ("1000", "0"):
            env_vars = {"EXCEL_API_MAX_FILE_SIZE_MB": value}
            with (
                patch.dict(os.environ, env_vars, clear=True),
                pytest.raises(ValueError, match="between 1 and 500"),
            ):
                Settings(_env_file=None)

    def test_ports_must_be_valid(self) -> None:
        """Test server and SMTP port validation."""
        for name in ("EXCEL_API_SERVER_PORT", "EXCEL_API_SMTP_PORT"):
            env_vars = {name: "70000"}
            with (
                patch.dict(os.environ, env_vars, clear=True),
                pytest.raises(ValueError, match="between 1 and 65535"),
            ):
                Settings(_env_file=None)

    def test_valid_port(self) -> None:
        env_vars = {"EXCEL_API_SERVER_PORT": "8080", "EXCEL_API_SMTP_PORT": "465"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.server_port == 8080
        assert settings.smtp_port == 465

    def test_smtp_timeout_must_be_positive(self) -> None:
        env_vars = {"EXCEL_API_SMTP_TIMEOUT_SECONDS": "0"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="must be positive"),
        ):
            Settings(_env_file=None)


class TestValidateSettingsOnStartup:
    """Tests for the validate_settings_on_startup function."""

    def test_warns_when_smtp_not_configured(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test warning is logged when SMTP credentials are missing."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "SMTP credentials are not configured" in caplog.text

    def test_no_warning_when_smtp_configured(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        env_vars = {
            "EXCEL_API_SMTP_USERNAME": "reports@example.com",
            "EXCEL_API_SMTP_PASSWORD": "app-secret",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "SMTP credentials are not configured" not in caplog.text

    def test_warns_about_permissive_cors_in_production(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test warning for permissive CORS when not in debug mode."""
        env_vars = {"EXCEL_API_CORS_ORIGINS": "*", "EXCEL_API_DEBUG": "false"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" in caplog.text

    def test_no_cors_warning_in_debug_mode(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        env_vars = {"EXCEL_API_CORS_ORIGINS": "*", "EXCEL_API_DEBUG": "true"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" not in caplog.text
