# app/models/base.py
"""
Shared model base: automatic timestamps and a soft-delete marker.
"""
import datetime as dt
from tortoise import fields, models
from tortoise.queryset import QuerySet


class SoftDeleteModel(models.Model):
    """
    Abstract base for rows that are hidden rather than physically removed.

    Reads must go through alive() so soft-deleted rows never leak into results.
    """
    created_at = fields.DatetimeField(auto_now_add=True)  # Set once on insert
    updated_at = fields.DatetimeField(auto_now=True)  # Refreshed on every instance save
    deleted_at = fields.DatetimeField(null=True, index=True)  # Soft-delete marker (null = visible)

    class Meta:
        abstract = True

    @classmethod
    def alive(cls, **filters) -> QuerySet:
        """Queryset over rows that have not been soft-deleted."""
        return cls.filter(deleted_at__isnull=True, **filters)


def utc_now() -> dt.datetime:
    """Current UTC datetime with timezone information."""
    return dt.datetime.now(dt.timezone.utc)
