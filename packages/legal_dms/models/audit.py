"""Audit trail model."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import (
    AuditOutcome,
    AuditRiskLevel,
    Base,
    audit_outcome_enum,
    audit_risk_level_enum,
    utcnow,
)

__all__ = ["AuditLog"]


class AuditLog(Base):
    """Append-only record of user actions.

    ``user_id`` and ``firm_id`` are not foreign keys so that entries survive
    user and firm removal.
    """

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column()
    firm_id: Mapped[uuid.UUID | None] = mapped_column()
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    resource_id: Mapped[str | None] = mapped_column(String(100))
    details: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    risk_level: Mapped[AuditRiskLevel] = mapped_column(
        audit_risk_level_enum(), default=AuditRiskLevel.LOW, nullable=False
    )
    outcome: Mapped[AuditOutcome] = mapped_column(
        audit_outcome_enum(), default=AuditOutcome.SUCCESS, nullable=False
    )
    timestamp: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_audit_logs_firm_time", "firm_id", "timestamp"),
        Index("idx_audit_logs_resource", "resource_type", "resource_id"),
    )
