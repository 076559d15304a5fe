"""
Permission classes for the payments API.

- HasInternalServiceToken: Caller presents the shared internal service
  token in the x-internal-token header. Used by trusted services (the
  storefront backend, admin tooling) to read purchases.
"""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from rest_framework import permissions

from payments.conf import get_payment_settings

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

INTERNAL_TOKEN_HEADER = "x-internal-token"


class HasInternalServiceToken(permissions.BasePermission):
    """
    Allows access only to callers holding the internal service token.

    Denies everything when no token is configured.
    """

    message = "A valid internal service token is required."

    def has_permission(self, request: Request, view: APIView) -> bool:
        expected = get_payment_settings().internal_api_token
        presented = request.headers.get(INTERNAL_TOKEN_HEADER, "")
        if not expected or not presented:
            return False
        return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))
