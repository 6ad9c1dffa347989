"""Audit trail: database rows plus structured log events."""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..models import AuditLog, Document, MatterShare
from ..policy import Principal
from ..schema.enums import AuditOutcome, AuditRiskLevel
from ..settings import DmsSettings

__all__ = ["AuditService"]

logger = structlog.get_logger(__name__)

_SENSITIVE_KEYS = {"password", "token", "secret", "authorization", "api_key"}
_REDACTED = "[REDACTED]"


def _redact(details: Mapping[str, Any]) -> dict[str, Any]:
    clean: dict[str, Any] = {}
    for key, value in details.items():
        if key.lower() in _SENSITIVE_KEYS:
            clean[key] = _REDACTED
        elif isinstance(value, Mapping):
            clean[key] = _redact(value)
        elif isinstance(value, uuid.UUID):
            clean[key] = str(value)
        else:
            clean[key] = value
    return clean


class AuditService:
    """감사 로그 기록/조회."""

    def __init__(self, session: Session, settings: DmsSettings):
        self.session = session
        self.settings = settings

    def log(
        self,
        principal: Optional[Principal],
        action: str,
        resource_type: str,
        resource_id: Optional[uuid.UUID | str] = None,
        details: Optional[Mapping[str, Any]] = None,
        risk_level: AuditRiskLevel = AuditRiskLevel.LOW,
        outcome: AuditOutcome = AuditOutcome.SUCCESS,
        firm_id: Optional[uuid.UUID] = None,
    ) -> Optional[AuditLog]:
        """Record an audit event.

        The row joins the caller's transaction; the service that mutates state
        commits both together. Returns ``None`` when auditing is disabled.
        """

        payload = _redact(details or {})
        user_id = principal.id if principal else None
        firm_id = firm_id or (principal.firm_id if principal else None)
        logger.info(
            "audit_event",
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            user_id=str(user_id) if user_id else None,
            firm_id=str(firm_id) if firm_id else None,
            risk_level=risk_level.value,
            outcome=outcome.value,
        )
        if not self.settings.enable_audit:
            return None

        entry = AuditLog(
            user_id=user_id,
            firm_id=firm_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            details=payload,
            ip_address=principal.ip_address if principal else None,
            user_agent=principal.user_agent if principal else None,
            risk_level=risk_level,
            outcome=outcome,
        )
        self.session.add(entry)
        return entry

    def list_logs(
        self,
        firm_id: Optional[uuid.UUID],
        *,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
        risk_level: Optional[AuditRiskLevel] = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[AuditLog], int]:
        stmt = select(AuditLog)
        if firm_id is not None:
            stmt = stmt.where(AuditLog.firm_id == firm_id)
        if action:
            stmt = stmt.where(AuditLog.action == action)
        if resource_type:
            stmt = stmt.where(AuditLog.resource_type == resource_type)
        if user_id:
            stmt = stmt.where(AuditLog.user_id == user_id)
        if risk_level:
            stmt = stmt.where(AuditLog.risk_level == risk_level)

        total = self.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        page = max(page, 1)
        limit = min(max(limit, 1), 100)
        rows = self.session.execute(
            stmt.order_by(AuditLog.timestamp.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).scalars()
        return list(rows), total

    def matter_history(self, matter_id: uuid.UUID, limit: int = 200) -> list[AuditLog]:
        """Events for the matter itself, its documents and its shares."""

        document_ids = [
            str(doc_id)
            for doc_id in self.session.execute(
                select(Document.id).where(Document.matter_id == matter_id)
            ).scalars()
        ]
        share_ids = [
            str(share_id)
            for share_id in self.session.execute(
                select(MatterShare.id).where(MatterShare.matter_id == matter_id)
            ).scalars()
        ]
        conditions = [
            (AuditLog.resource_type == "matter") & (AuditLog.resource_id == str(matter_id))
        ]
        if document_ids:
            conditions.append(
                (AuditLog.resource_type == "document")
                & AuditLog.resource_id.in_(document_ids)
            )
        if share_ids:
            conditions.append(
                (AuditLog.resource_type == "matter_share")
                & AuditLog.resource_id.in_(share_ids)
            )
        stmt = (
            select(AuditLog)
            .where(or_(*conditions))
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())
