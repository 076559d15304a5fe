"""
Refund audit trail.

Every refund authorization failure, attempt and outcome is written to the
"payments.audit" logger as one line:

    [refund-audit] {"event": "refund_success", "at": "2026-01-05T10:00:00+00:00", ...}

Callers pass identifiers only. Tokens, secrets and signatures must never
be handed to audit_refund_event.
"""

from __future__ import annotations

import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

audit_logger = logging.getLogger("payments.audit")

FAILURE_EVENTS = frozenset({"refund_db_update_failed", "refund_error"})


def audit_refund_event(event: str, **data) -> dict:
    """Write one refund audit record and return it."""
    record = {"event": event, "at": timezone.now().isoformat()}
    record.update({key: value for key, value in data.items() if value is not None})

    if event in FAILURE_EVENTS:
        level = logging.ERROR
    elif event.startswith("blocked_"):
        level = logging.WARNING
    else:
        level = logging.INFO

    audit_logger.log(level, "[refund-audit] %s", json.dumps(record, cls=DjangoJSONEncoder))
    return record
