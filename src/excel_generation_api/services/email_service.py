"""SMTP delivery of generated workbooks.

Thin wrapper over ``smtplib`` that builds the outgoing messages (plain
text with an HTML alternative and an ``.xlsx`` attachment), verifies the
transport for health reporting, and sends to several recipients while
isolating per-recipient failures.
"""

from __future__ import annotations

import smtplib
import time
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from html import escape

from excel_generation_api.config import Settings
from excel_generation_api.config import settings as app_settings
from excel_generation_api.utils.exceptions import (
    EmailConfigurationError,
    EmailDeliveryError,
)
from excel_generation_api.utils.logging import get_logger

logger = get_logger(__name__)

XLSX_MAINTYPE = "application"
XLSX_SUBTYPE = "vnd.openxmlformats-officedocument.spreadsheetml.sheet"

DEFAULT_SUBJECT = "Your Generated Excel File"

DEFAULT_TEXT_BODY = """\
Hello,

Please find attached the Excel file generated from your JSON data.

The file contains:
- Your mapped data in the specified cells
- Custom styling and formatting as requested
- Any tables or formulas you configured

If you have any questions or need modifications, please don't hesitate to reach out.

Best regards,
Excel Generation Service"""

HTML_BODY_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background-color: #f8f9fa; padding: 20px; border-radius: 5px; }}
        .content {{ padding: 20px; border: 1px solid #dee2e6; border-radius: 5px; }}
        .footer {{ margin-top: 20px; font-size: 12px; color: #6c757d; }}
        .highlight {{ background-color: #e7f3ff; padding: 10px; border-left: 4px solid #007bff; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h2 style="margin: 0; color: #007bff;">Your Excel File is Ready!</h2>
        </div>
        <div class="content">
            <p>Hello,</p>
            <p>Your Excel file has been generated from your JSON data and is attached to this email.</p>
            <div class="highlight">
                <strong>File Details:</strong>
                <ul>
                    <li><strong>Filename:</strong> {file_name}</li>
                    <li><strong>Generated:</strong> {generated_at}</li>
                    <li><strong>Format:</strong> Microsoft Excel (.xlsx)</li>
                </ul>
            </div>
            <p>If you need any modifications or have questions about the generated file, please reach out.</p>
        </div>
        <div class="footer">
            <p><strong>Excel Generation API Service</strong><br>
            <em>This is an automated message. Please do not reply to this email.</em></p>
        </div>
    </div>
</body>
</html>"""


@dataclass
class EmailHealth:
    """Result of verifying the SMTP transport."""

    success: bool
    message: str


@dataclass
class BulkEmailFailure:
    email: str
    error: str


@dataclass
class BulkEmailResult:
    successful: list[str] = field(default_factory=list)
    failed: list[BulkEmailFailure] = field(default_factory=list)


class EmailService:
    """Send workbooks and notifications over SMTP."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or app_settings

    @property
    def sender(self) -> str:
        s = self._settings
        return formataddr((s.email_sender_name, s.smtp_username))

    def _connect(self) -> smtplib.SMTP:
        """Open an authenticated SMTP connection.

        Raises:
            EmailConfigurationError: If credentials are not configured.
        """
        s = self._settings
        if not s.email_configured:
            raise EmailConfigurationError()

        smtp: smtplib.SMTP
        if s.smtp_use_ssl:
            smtp = smtplib.SMTP_SSL(
                s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds
            )
        else:
            smtp = smtplib.SMTP(
                s.smtp_host, s.smtp_port, timeout=s.smtp_timeout_seconds
            )
        try:
            if not s.smtp_use_ssl:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            smtp.login(s.smtp_username, s.get_smtp_password())
        except (smtplib.SMTPException, OSError):
            smtp.close()
            raise
        return smtp

    def _send(self, message: EmailMessage, file_name: str | None = None) -> None:
        recipient = str(message["To"])
        start = time.perf_counter()
        try:
            with self._connect() as smtp:
                smtp.send_message(message)
        except EmailConfigurationError:
            raise
        except (smtplib.SMTPException, OSError) as e:
            self._log_delivery(recipient, file_name, start, success=False, error=str(e))
            raise EmailDeliveryError(str(e), recipient=recipient) from e
        self._log_delivery(recipient, file_name, start, success=True)

    def _log_delivery(
        self,
        recipient: str,
        file_name: str | None,
        start: float,
        success: bool,
        error: str | None = None,
    ) -> None:
        logger.log_email_delivery(
            recipient=recipient,
            file_name=file_name,
            duration_seconds=time.perf_counter() - start,
            success=success,
            error_message=error,
        )

    def build_workbook_message(
        self,
        recipient: str,
        content: bytes,
        file_name: str = "generated.xlsx",
        subject: str | None = None,
        message: str | None = None,
    ) -> EmailMessage:
        """Compose the email carrying a generated workbook."""
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = recipient
        email["Subject"] = subject or DEFAULT_SUBJECT
        email.set_content(message or DEFAULT_TEXT_BODY)
        email.add_alternative(
            HTML_BODY_TEMPLATE.format(
                file_name=escape(file_name),
                generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            ),
            subtype="html",
        )
        email.add_attachment(
            content,
            maintype=XLSX_MAINTYPE,
            subtype=XLSX_SUBTYPE,
            filename=file_name,
        )
        return email

    def send_workbook(
        self,
        recipient: str,
        content: bytes,
        file_name: str = "generated.xlsx",
        subject: str | None = None,
        message: str | None = None,
    ) -> None:
        """Email a workbook as an attachment.

        Raises:
            EmailConfigurationError: If SMTP credentials are missing.
            EmailDeliveryError: If the transport fails.
        """
        email = self.build_workbook_message(
            recipient, content, file_name, subject, message
        )
        self._send(email, file_name=file_name)

    def send_notification(
        self,
        recipient: str,
        subject: str,
        message: str,
        is_html: bool = False,
    ) -> None:
        """Send a plain notification without attachment."""
        email = EmailMessage()
        email["From"] = self.sender
        email["To"] = recipient
        email["Subject"] = subject
        email.set_content(message, subtype="html" if is_html else "plain")
        self._send(email)

    def verify_connection(self) -> EmailHealth:
        """Check that the transport accepts our credentials; never raises."""
        try:
            with self._connect() as smtp:
                smtp.noop()
        except (EmailConfigurationError, smtplib.SMTPException, OSError) as e:
            message = e.message if isinstance(e, EmailConfigurationError) else str(e)
            logger.warning("Email transport check failed", error=message)
            return EmailHealth(
                success=False,
                message=f"Email configuration error: {message}",
            )
        return EmailHealth(
            success=True,
            message="Email configuration is valid and ready to use",
        )

    def send_bulk(
        self,
        recipients: list[str],
        content: bytes,
        file_name: str = "generated.xlsx",
        subject: str | None = None,
        message: str | None = None,
    ) -> BulkEmailResult:
        """Send the same workbook to several recipients, one at a time."""
        result = BulkEmailResult()
        for recipient in recipients:
            try:
                self.send_workbook(recipient, content, file_name, subject, message)
            except (EmailConfigurationError, EmailDeliveryError) as e:
                result.failed.append(BulkEmailFailure(email=recipient, error=e.message))
                continue
            result.successful.append(recipient)
        return result
