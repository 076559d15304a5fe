"""
Mail transports for payment receipts.

Receipts can go out over more than one SMTP account. Each account is a
MailTransport wrapping a Django email backend; build_transports() returns
them in preference order (Gmail first, then a generic SMTP relay) and the
receipt sender tries them in sequence until one delivers.

Configuration (via PaymentSettings):
- gmail_user / gmail_app_password: Gmail account (smtp.gmail.com:587, STARTTLS)
- smtp_host / smtp_port / smtp_user / smtp_password / smtp_use_ssl: SMTP relay
- mail_from_name: Display name on the From header
- mail_timeout: Socket timeout in seconds

Usage:
    from payments.mailers import build_transports

    for transport in build_transports(payment_settings):
        result = transport.send(message)
        if result.success:
            break
"""

from __future__ import annotations

import logging
import smtplib
from typing import TYPE_CHECKING

from django.core.mail import get_connection

from core.services import ServiceResult

if TYPE_CHECKING:
    from django.core.mail import EmailMessage
    from django.core.mail.backends.base import BaseEmailBackend

    from payments.conf import PaymentSettings

logger = logging.getLogger(__name__)

SMTP_BACKEND = "django.core.mail.backends.smtp.EmailBackend"

GMAIL_HOST = "smtp.gmail.com"
GMAIL_PORT = 587

MISSING_MAIL_CONFIG = "Missing mail config. Set GMAIL_USER + GMAIL_APP_PASSWORD (or SMTP vars)."


class MailTransport:
    """
    One SMTP account able to send receipt mail.

    Attributes:
        label: Short name reported back to the client ("gmail", "smtp")
        sender_email: Address mail is sent from
    """

    def __init__(
        self,
        label: str,
        sender_email: str,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool = False,
        use_ssl: bool = False,
        timeout: int = 15,
        from_name: str = "",
        backend: str = SMTP_BACKEND,
    ):
        self.label = label
        self.sender_email = sender_email
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.from_name = from_name
        self.backend = backend

    def __repr__(self) -> str:
        return f"MailTransport(label={self.label!r}, host={self.host!r}, port={self.port!r})"

    @property
    def from_address(self) -> str:
        if self.from_name:
            return f"{self.from_name} <{self.sender_email}>"
        return self.sender_email

    def get_connection(self) -> BaseEmailBackend:
        return get_connection(
            self.backend,
            fail_silently=False,
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            use_tls=self.use_tls,
            use_ssl=self.use_ssl,
            timeout=self.timeout,
        )

    def verify(self, connection: BaseEmailBackend) -> ServiceResult[None]:
        """Open the connection so a bad login fails before any message is built."""
        try:
            connection.open()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Mail transport %s unavailable: %s", self.label, e)
            return ServiceResult.failure(str(e) or "Transport verify failed", error_code="MAIL_TRANSPORT_ERROR")
        return ServiceResult.success(None)

    def send(
        self,
        message: EmailMessage,
        connection: BaseEmailBackend | None = None,
    ) -> ServiceResult[int]:
        """
        Send one message through this transport.

        Returns:
            ServiceResult with the number of messages sent, or the SMTP
            error message on failure
        """
        message.from_email = self.from_address
        message.connection = connection or self.get_connection()
        # BadHeaderError is a ValueError raised while the message is built
        try:
            sent = message.send(fail_silently=False)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            logger.warning(
                "Mail send via %s failed: %s",
                self.label,
                e,
                extra={"transport": self.label, "to": message.to},
            )
            return ServiceResult.failure(str(e) or "Failed to send mail", error_code="MAIL_SEND_FAILED")

        if not sent:
            return ServiceResult.failure("Mail was not accepted", error_code="MAIL_SEND_FAILED")
        logger.info("Mail sent via %s", self.label, extra={"transport": self.label, "to": message.to})
        return ServiceResult.success(sent)


def build_transports(payment_settings: PaymentSettings) -> list[MailTransport]:
    """Return the configured transports in the order they should be tried."""
    transports: list[MailTransport] = []

    if payment_settings.gmail_user and payment_settings.gmail_app_password:
        transports.append(
            MailTransport(
                label="gmail",
                sender_email=payment_settings.gmail_user,
                host=GMAIL_HOST,
                port=GMAIL_PORT,
                username=payment_settings.gmail_user,
                password=payment_settings.gmail_app_password,
                use_tls=True,
                timeout=payment_settings.mail_timeout,
                from_name=payment_settings.mail_from_name,
            )
        )

    if payment_settings.smtp_host and payment_settings.smtp_user and payment_settings.smtp_password:
        transports.append(
            MailTransport(
                label="smtp",
                sender_email=payment_settings.smtp_user,
                host=payment_settings.smtp_host,
                port=payment_settings.smtp_port,
                username=payment_settings.smtp_user,
                password=payment_settings.smtp_password,
                use_ssl=payment_settings.smtp_use_ssl,
                use_tls=not payment_settings.smtp_use_ssl,
                timeout=payment_settings.mail_timeout,
                from_name=payment_settings.mail_from_name,
            )
        )

    return transports
