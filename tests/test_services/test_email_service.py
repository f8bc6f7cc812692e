"""Tests for SMTP delivery of generated workbooks."""

from __future__ import annotations

import os
import smtplib
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

from excel_generation_api.config import Settings
from excel_generation_api.services.email_service import (
    DEFAULT_SUBJECT,
    XLSX_SUBTYPE,
    EmailService,
)
from excel_generation_api.utils.exceptions import (
    EmailConfigurationError,
    EmailDeliveryError,
)

WORKBOOK = b"PK\x03\x04fake-xlsx-bytes"


def _settings(**env: str) -> Settings:
    values = {
        "EXCEL_API_SMTP_USERNAME": "reports@example.com",
        "EXCEL_API_SMTP_PASSWORD": "app-secret",
        **env,
    }
    with patch.dict(os.environ, values, clear=True):
        return Settings(_env_file=None)


def _smtp_instance(smtp_cls: MagicMock) -> MagicMock:
    instance = smtp_cls.return_value
    instance.__enter__.return_value = instance
    instance.has_extn.return_value = True
    return instance


@pytest.fixture
def smtp_cls() -> Iterator[MagicMock]:
    with patch("excel_generation_api.services.email_service.smtplib.SMTP") as cls:
        _smtp_instance(cls)
        yield cls


def test_send_workbook_uses_starttls_and_attaches_file(smtp_cls: MagicMock) -> None:
    service = EmailService(_settings())

    service.send_workbook("alice@example.com", WORKBOOK, "report.xlsx")

    smtp_cls.assert_called_once_with("smtp.gmail.com", 587, timeout=30.0)
    smtp = smtp_cls.return_value
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("reports@example.com", "app-secret")
    smtp.send_message.assert_called_once()

    message = smtp.send_message.call_args.args[0]
    assert message["To"] == "alice@example.com"
    assert message["Subject"] == DEFAULT_SUBJECT
    assert "Excel Generator" in message["From"]

    attachments = list(message.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "report.xlsx"
    assert attachments[0].get_content_subtype() == XLSX_SUBTYPE
    assert attachments[0].get_content() == WORKBOOK


def test_message_has_text_and_html_bodies() -> None:
    service = EmailService(_settings())
    message = service.build_workbook_message(
        "alice@example.com", WORKBOOK, "<q>.xlsx", subject="Quarterly"
    )

    assert message["Subject"] == "Quarterly"
    plain = message.get_body(preferencelist=("plain",))
    html = message.get_body(preferencelist=("html",))
    assert plain is not None and "Excel file" in plain.get_content()
    assert html is not None and "&lt;q&gt;.xlsx" in html.get_content()


def test_ssl_transport() -> None:
    service = EmailService(
        _settings(EXCEL_API_SMTP_USE_SSL="true", EXCEL_API_SMTP_PORT="465")
    )
    with patch(
        "excel_generation_api.services.email_service.smtplib.SMTP_SSL"
    ) as ssl_cls:
        smtp = _smtp_instance(ssl_cls)
        service.send_workbook("alice@example.com", WORKBOOK)

    ssl_cls.assert_called_once_with("smtp.gmail.com", 465, timeout=30.0)
    smtp.starttls.assert_not_called()
    smtp.send_message.assert_called_once()


def test_not_configured_raises(smtp_cls: MagicMock) -> None:
    with patch.dict(os.environ, {}, clear=True):
        service = EmailService(Settings(_env_file=None))

    with pytest.raises(EmailConfigurationError):
        service.send_workbook("alice@example.com", WORKBOOK)
    smtp_cls.assert_not_called()


def test_transport_failure_raises_delivery_error(smtp_cls: MagicMock) -> None:
    smtp_cls.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused(
        {"alice@example.com": (550, b"No such user")}
    )
    service = EmailService(_settings())

    with pytest.raises(EmailDeliveryError) as exc_info:
        service.send_workbook("alice@example.com", WORKBOOK)

    assert exc_info.value.message.startswith("Failed to send email:")
    assert exc_info.value.recipient == "alice@example.com"


def test_connection_refused_raises_delivery_error(smtp_cls: MagicMock) -> None:
    smtp_cls.side_effect = ConnectionRefusedError("Connection refused")
    service = EmailService(_settings())

    with pytest.raises(EmailDeliveryError, match="Connection refused"):
        service.send_workbook("alice@example.com", WORKBOOK)


def test_login_failure_closes_connection(smtp_cls: MagicMock) -> None:
    smtp = smtp_cls.return_value
    smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
    service = EmailService(_settings())

    with pytest.raises(EmailDeliveryError):
        service.send_workbook("alice@example.com", WORKBOOK)
    smtp.close.assert_called_once()


@pytest.mark.parametrize(
    "error",
    [smtplib.SMTPNotSupportedError("STARTTLS refused"), OSError("reset by peer")],
)
def test_handshake_failure_closes_connection(
    smtp_cls: MagicMock, error: Exception
) -> None:
    smtp = smtp_cls.return_value
    smtp.starttls.side_effect = error
    service = EmailService(_settings())

    with pytest.raises(EmailDeliveryError):
        service.send_workbook("alice@example.com", WORKBOOK)
    smtp.close.assert_called_once()
    smtp.login.assert_not_called()


def test_verify_connection_closes_on_ehlo_failure(smtp_cls: MagicMock) -> None:
    smtp = smtp_cls.return_value
    smtp.ehlo.side_effect = smtplib.SMTPServerDisconnected("gone")

    health = EmailService(_settings()).verify_connection()

    assert health.success is False
    smtp.close.assert_called_once()


def test_send_notification(smtp_cls: MagicMock) -> None:
    EmailService(_settings()).send_notification(
        "alice@example.com", "Done", "<b>Ready</b>", is_html=True
    )

    message = smtp_cls.return_value.send_message.call_args.args[0]
    assert message["Subject"] == "Done"
    assert message.get_content_type() == "text/html"


def test_verify_connection(smtp_cls: MagicMock) -> None:
    health = EmailService(_settings()).verify_connection()

    assert health.success is True
    assert health.message == "Email configuration is valid and ready to use"
    smtp_cls.return_value.noop.assert_called_once()


def test_verify_connection_never_raises(smtp_cls: MagicMock) -> None:
    smtp_cls.side_effect = OSError("Network unreachable")

    health = EmailService(_settings()).verify_connection()

    assert health.success is False
    assert "Network unreachable" in health.message


def test_verify_connection_without_credentials() -> None:
    with patch.dict(os.environ, {}, clear=True):
        health = EmailService(Settings(_env_file=None)).verify_connection()

    assert health.success is False
    assert health.message.startswith("Email configuration error:")


def test_send_bulk_isolates_failures(smtp_cls: MagicMock) -> None:
    smtp_cls.return_value.send_message.side_effect = [
        None,
        smtplib.SMTPDataError(554, b"rejected"),
        None,
    ]

    result = EmailService(_settings()).send_bulk(
        ["a@example.com", "b@example.com", "c@example.com"], WORKBOOK
    )

    assert result.successful == ["a@example.com", "c@example.com"]
    assert len(result.failed) == 1
    assert result.failed[0].email == "b@example.com"
    assert result.failed[0].error.startswith("Failed to send email:")
