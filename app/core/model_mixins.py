"""
Model mixins providing reusable functionality for Django models.

This module contains abstract mixin classes that can be combined with
BaseModel to add specific functionality. They are generic infrastructure
classes with no domain-specific logic.

Available Mixins:
    UUIDPrimaryKeyMixin: Use UUID as primary key

Usage:
    from core.models import BaseModel
    from core.model_mixins import UUIDPrimaryKeyMixin

    class Purchase(UUIDPrimaryKeyMixin, BaseModel):
        email = models.EmailField()

Note:
    - Always list mixins before BaseModel in inheritance
    - Mixins are abstract and don't create database tables
"""

from __future__ import annotations

import uuid

from django.db import models


class UUIDPrimaryKeyMixin(models.Model):
    """
    Use UUID as primary key instead of auto-increment integer.

    Purchase ids travel to the browser and back (verify, mark-failed) and
    into gateway notes, so they must not be guessable or reveal volume.

    Fields:
        id: UUIDField as primary key (auto-generated)

    Note:
        UUIDs are larger than integers (16 bytes vs 4-8 bytes) and
        have slightly slower index performance.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
    )

    class Meta:
        abstract = True
