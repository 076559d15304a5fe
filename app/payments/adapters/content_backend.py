"""
HTTP client for the content backend.

The content backend owns packages, fixed departures and user profiles.
The checkout service reads authoritative prices and admin profiles from
it; it never writes to it.

Every request is bounded by the configured timeout and carries the
internal service token (x-internal-token) when one is configured. User
bearer tokens are forwarded only on the profile lookup.

Usage:
    from payments.adapters import ContentBackendClient

    client = ContentBackendClient(get_payment_settings())
    body = client.get_fixed_departure("char-dham-2026")
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import requests

from payments.exceptions import ContentBackendError

if TYPE_CHECKING:
    from payments.conf import PaymentSettings

logger = logging.getLogger(__name__)

INTERNAL_TOKEN_HEADER = "x-internal-token"


class ContentBackendClient:
    """
    Thin requests-based client for the content backend REST API.

    Methods return the decoded JSON body. Any failure raises
    ContentBackendError carrying the upstream status (504 on timeout,
    503 when unreachable, 502 on an undecodable body).
    """

    def __init__(
        self,
        payment_settings: PaymentSettings,
        session: requests.Session | None = None,
    ):
        self.base_url = payment_settings.content_backend_url.rstrip("/")
        self.timeout = payment_settings.content_backend_timeout
        self.internal_token = payment_settings.internal_api_token
        self.session = session or requests.Session()

    # =========================================================================
    # Pricing Sources
    # =========================================================================

    def get_fixed_departure(self, slug: str) -> Any:
        return self._get(f"/api/fixed-departures/slug/{quote(slug, safe='')}")

    def get_package_listing(self, slug: str) -> Any:
        return self._get(f"/api/all-packages/{quote(slug, safe='')}")

    def get_package(self, slug: str) -> Any:
        return self._get(f"/api/packages/slug/{quote(slug, safe='')}")

    # =========================================================================
    # Auth
    # =========================================================================

    def get_profile(self, bearer_token: str) -> Any:
        """Resolve a user bearer token to the content backend profile."""
        return self._get(
            "/api/auth/profile",
            headers={"Authorization": f"Bearer {bearer_token}"},
        )

    # =========================================================================
    # Transport
    # =========================================================================

    def _get(self, path: str, headers: dict[str, str] | None = None) -> Any:
        request_headers = {"Accept": "application/json"}
        if self.internal_token:
            request_headers[INTERNAL_TOKEN_HEADER] = self.internal_token
        if headers:
            request_headers.update(headers)

        url = f"{self.base_url}{path}"
        log_context = {"operation": "content_backend_get", "path": path}
        start_time = time.time()

        try:
            response = self.session.get(url, headers=request_headers, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning("Content backend timed out", extra=log_context)
            raise ContentBackendError(
                "Content backend timed out",
                status_code=504,
                details={"path": path},
            ) from e
        except requests.RequestException as e:
            logger.warning("Content backend unreachable: %s", e, extra=log_context)
            raise ContentBackendError(
                "Content backend unreachable",
                status_code=503,
                details={"path": path},
            ) from e

        duration_ms = (time.time() - start_time) * 1000
        logger.debug(
            "Content backend responded",
            extra={**log_context, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        if not response.ok:
            raise ContentBackendError(
                f"Content backend returned {response.status_code}",
                status_code=response.status_code,
                details={"path": path},
            )

        try:
            return response.json()
        except ValueError as e:
            raise ContentBackendError(
                "Content backend returned invalid JSON",
                status_code=502,
                details={"path": path},
            ) from e
