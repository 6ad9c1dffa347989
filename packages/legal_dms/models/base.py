"""Shared SQLAlchemy base, column types and enum helpers for DMS models."""

from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import JSON, DateTime, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..schema.enums import (
    AccessLevel,
    AuditOutcome,
    AuditRiskLevel,
    MatterRole,
    MatterStatus,
    ShareRole,
    ShareStatus,
    UploaderType,
    db_enum,
)

__all__ = [
    "Base",
    "JSONType",
    "TimestampMixin",
    "utcnow",
    "ensure_utc",
    "AccessLevel",
    "AuditOutcome",
    "AuditRiskLevel",
    "MatterRole",
    "MatterStatus",
    "ShareRole",
    "ShareStatus",
    "UploaderType",
    "matter_status_enum",
    "matter_role_enum",
    "access_level_enum",
    "share_role_enum",
    "share_status_enum",
    "audit_risk_level_enum",
    "audit_outcome_enum",
    "uploader_type_enum",
]

# JSONB on PostgreSQL, plain JSON text elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_utc(value: dt.datetime | None) -> dt.datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value


class Base(DeclarativeBase):
    """Declarative base class shared by all DMS models."""

    type_annotation_map = {dict[str, Any]: JSONType, list[str]: JSONType}


class TimestampMixin:
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


# Enum helper factories -----------------------------------------------------

def matter_status_enum():
    """Return a configured enum for the ``matter_status`` type."""

    return db_enum(MatterStatus)


def matter_role_enum():
    return db_enum(MatterRole)


def access_level_enum():
    return db_enum(AccessLevel)


def share_role_enum():
    """Return a configured enum for the ``share_role`` type."""

    return db_enum(ShareRole)


def share_status_enum():
    """Return a configured enum for the ``share_status`` type."""

    return db_enum(ShareStatus)


def audit_risk_level_enum():
    return db_enum(AuditRiskLevel)


def audit_outcome_enum():
    return db_enum(AuditOutcome)


def uploader_type_enum():
    return db_enum(UploaderType)
