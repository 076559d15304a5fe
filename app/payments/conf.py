"""
Payment configuration resolved once from Django settings.

All environment input is read by config/settings.py through django-environ.
This module freezes the payment-related subset into a PaymentSettings
instance that services and adapters receive in their constructors, so no
component reads settings at arbitrary call sites.

Usage:
    from payments.conf import get_payment_settings

    payment_settings = get_payment_settings()
    adapter = RazorpayAdapter(payment_settings)

Tests build their own instance:
    PaymentSettings(razorpay_key_id="rzp_test_x", razorpay_key_secret="s")
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from django.conf import settings


@dataclass(frozen=True)
class PaymentSettings:
    """
    Immutable payment configuration.

    Attributes:
        razorpay_key_id: Public key id, returned to the checkout client
        razorpay_key_secret: API secret, also the payment signature key
        razorpay_webhook_secret: Secret for webhook body signatures
        razorpay_timeout: Gateway request timeout in seconds
        currency: Charge currency (ISO 4217)
        content_backend_url: Base URL for pricing and auth-profile lookups
        internal_api_token: Service token sent as x-internal-token
        content_backend_timeout: Content backend request timeout in seconds
        refund_api_enabled: Operational kill-switch for admin refunds
        mail_*: Receipt mail transports (Gmail first, then generic SMTP)
    """

    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""
    razorpay_timeout: int = 10
    currency: str = "INR"

    content_backend_url: str = "http://localhost:5001"
    internal_api_token: str = ""
    content_backend_timeout: int = 10

    refund_api_enabled: bool = False

    gmail_user: str = ""
    gmail_app_password: str = ""
    smtp_host: str = ""
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_ssl: bool = True
    mail_from_name: str = "Paradise Yatra"
    mail_timeout: int = 15
    receipt_admin_email: str = ""

    @property
    def has_gateway_credentials(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @classmethod
    def from_django_settings(cls) -> PaymentSettings:
        """Build an instance from the values config/settings.py read."""
        return cls(
            razorpay_key_id=settings.RAZORPAY_KEY_ID,
            razorpay_key_secret=settings.RAZORPAY_KEY_SECRET,
            razorpay_webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
            razorpay_timeout=settings.RAZORPAY_API_TIMEOUT_SECONDS,
            currency=settings.PAYMENT_CURRENCY.upper(),
            content_backend_url=settings.CONTENT_BACKEND_URL.rstrip("/"),
            internal_api_token=settings.INTERNAL_API_TOKEN,
            content_backend_timeout=settings.CONTENT_BACKEND_TIMEOUT_SECONDS,
            refund_api_enabled=settings.ENABLE_REFUND_API,
            gmail_user=settings.GMAIL_USER,
            gmail_app_password=settings.GMAIL_APP_PASSWORD,
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            # Some hosting panels wrap the password in literal quotes
            smtp_password=settings.SMTP_PASS.strip('"'),
            smtp_use_ssl=settings.SMTP_SECURE,
            mail_from_name=settings.MAIL_FROM_NAME,
            mail_timeout=settings.MAIL_TIMEOUT_SECONDS,
            receipt_admin_email=settings.RECEIPT_ADMIN_EMAIL,
        )


@lru_cache(maxsize=1)
def get_payment_settings() -> PaymentSettings:
    """Return the process-wide PaymentSettings, built on first use."""
    return PaymentSettings.from_django_settings()
