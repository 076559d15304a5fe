"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run. The suite runs
# against SQLite unless DATABASE_URL points somewhere else.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
# The test client speaks plain http; production HTTPS redirects would answer 301
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.SECURE_SSL_REDIRECT = False


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_*_service.py, test_handlers.py, etc. → integration
    - test_signatures.py, test_receipts.py, test_pricing_service.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_handlers.py",
        "test_internal_api.py",
        "test_purchase_service.py",
        "test_order_service.py",
        "test_verification_service.py",
        "test_refund_service.py",
        "test_health.py",
        "test_models.py",
    ]

    unit_patterns = [
        "test_serializers.py",
        "test_signatures.py",
        "test_pricing_service.py",
        "test_receipts.py",
        "test_mailers.py",
        "test_audit.py",
        "test_razorpay_adapter.py",
        "test_content_backend.py",
        "test_services.py",
    ]

    for item in items:
        # Skip if test already has a unit/integration marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = os.path.basename(str(item.fspath))

        if any(pattern == filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern == filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def _reset_payment_settings_cache():
    """Drop the memoized PaymentSettings so settings overrides take effect."""
    from payments.conf import get_payment_settings

    get_payment_settings.cache_clear()
    yield
    get_payment_settings.cache_clear()
