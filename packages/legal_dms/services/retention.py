"""Retention classes, deletion eligibility and bulk legal holds."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from .. import schemas
from ..models import Document, RetentionClass
from ..models.base import ensure_utc, utcnow
from ..policy import Principal
from ..schema.enums import AuditRiskLevel, MatterStatus
from .base import ConflictError, ServiceBase

__all__ = ["RetentionService"]

logger = structlog.get_logger(__name__)


def _add_years(value: dt.datetime, years: int) -> dt.datetime:
    try:
        return value.replace(year=value.year + years)
    except ValueError:  # Feb 29 -> Feb 28
        return value.replace(year=value.year + years, day=28)


class RetentionService(ServiceBase):
    """보존 정책 관리."""

    def _get_class(self, class_id: uuid.UUID, principal: Principal) -> RetentionClass:
        retention_class = self.get_or_404(RetentionClass, class_id, "Retention class")
        self.check_firm_access(principal, retention_class.firm_id)
        return retention_class

    def _ensure_name_free(
        self, firm_id: uuid.UUID, name: str, exclude: Optional[uuid.UUID] = None
    ) -> None:
        stmt = select(RetentionClass.id).where(
            RetentionClass.firm_id == firm_id, RetentionClass.name == name
        )
        if exclude is not None:
            stmt = stmt.where(RetentionClass.id != exclude)
        if self.session.execute(stmt).first():
            raise ConflictError(f"Retention class '{name}' already exists")

    # ------------------------------------------------------------------ classes
    def list_classes(self, principal: Principal) -> list[RetentionClass]:
        self.authorize(principal, "read", "retention")
        firm_id = self.require_firm(principal)
        stmt = (
            select(RetentionClass)
            .where(RetentionClass.firm_id == firm_id)
            .order_by(RetentionClass.retention_years, RetentionClass.name)
        )
        return list(self.session.execute(stmt).scalars())

    def get_class(self, class_id: uuid.UUID, principal: Principal) -> RetentionClass:
        self.authorize(principal, "read", "retention")
        return self._get_class(class_id, principal)

    def create_class(
        self, request: schemas.RetentionClassCreateRequest, principal: Principal
    ) -> RetentionClass:
        self.authorize(principal, "write", "retention")
        firm_id = self.require_firm(principal)
        self._ensure_name_free(firm_id, request.name)
        retention_class = RetentionClass(firm_id=firm_id, **request.model_dump())
        self.session.add(retention_class)
        self.session.flush()
        self.audit.log(
            principal,
            "retention_class_create",
            "retention_class",
            retention_class.id,
            {"name": request.name, "retention_years": request.retention_years},
        )
        self.session.commit()
        return retention_class

    def update_class(
        self,
        class_id: uuid.UUID,
        request: schemas.RetentionClassUpdateRequest,
        principal: Principal,
    ) -> RetentionClass:
        self.authorize(principal, "write", "retention")
        retention_class = self._get_class(class_id, principal)
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            self._ensure_name_free(retention_class.firm_id, changes["name"], exclude=class_id)
        for field, value in changes.items():
            setattr(retention_class, field, value)
        self.audit.log(
            principal,
            "retention_class_update",
            "retention_class",
            retention_class.id,
            {"changes": changes},
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        return retention_class

    def delete_class(self, class_id: uuid.UUID, principal: Principal) -> None:
        self.authorize(principal, "write", "retention")
        retention_class = self._get_class(class_id, principal)
        in_use = self.session.execute(
            select(func.count()).where(
                Document.retention_class_id == class_id, Document.is_deleted.is_(False)
            )
        ).scalar_one()
        if in_use:
            raise ConflictError(
                f"Retention class is assigned to {in_use} document(s) and cannot be deleted"
            )
        self.session.delete(retention_class)
        self.audit.log(
            principal,
            "retention_class_delete",
            "retention_class",
            class_id,
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()

    # -------------------------------------------------------------- eligibility
    def eligible_for_deletion(
        self, principal: Principal, now: Optional[dt.datetime] = None
    ) -> list[Document]:
        """Documents past their retention period.

        Held, privileged and work-product documents are never eligible, and
        neither are documents of active matters.
        """

        self.authorize(principal, "read", "retention")
        firm_id = self.require_firm(principal)
        now = now or utcnow()
        stmt = (
            select(Document)
            .options(
                selectinload(Document.retention_class),
                selectinload(Document.meta),
                selectinload(Document.matter),
            )
            .where(
                Document.firm_id == firm_id,
                Document.is_deleted.is_(False),
                Document.legal_hold.is_(False),
            )
            .order_by(Document.created_at)
        )
        default_years = int(self.system_setting("default_retention_years"))
        eligible = []
        for document in self.session.execute(stmt).scalars():
            years = (
                document.retention_class.retention_years
                if document.retention_class is not None
                else default_years
            )
            if years <= 0:
                continue
            if _add_years(ensure_utc(document.created_at), years) > now:
                continue
            meta = document.meta
            if meta is not None and (meta.privileged or meta.work_product):
                continue
            if document.matter.status == MatterStatus.ACTIVE:
                continue
            eligible.append(document)
        return eligible

    # -------------------------------------------------------------- legal hold
    def bulk_legal_hold(
        self,
        document_ids: list[uuid.UUID],
        reason: Optional[str],
        principal: Principal,
        apply: bool = True,
    ) -> schemas.BulkOperationResponse:
        """Set or release legal hold on many documents of the caller's firm."""

        self.authorize(principal, "write", "legal_hold")
        firm_id = self.require_firm(principal)
        if apply and not reason:
            raise ValueError("A reason is required to apply a legal hold")
        if apply and not self.system_setting("enable_legal_holds"):
            raise PermissionError("Legal holds are disabled in system settings")

        processed = 0
        failed: list[dict[str, str]] = []
        now = utcnow()
        for document_id in dict.fromkeys(document_ids):
            document = self.session.get(Document, document_id)
            if document is None or document.is_deleted or document.firm_id != firm_id:
                failed.append({"document_id": str(document_id), "error": "Document not found"})
                continue
            if apply:
                document.legal_hold = True
                document.legal_hold_reason = reason
                document.legal_hold_set_by = principal.id
                document.legal_hold_set_at = now
            else:
                document.legal_hold = False
                document.legal_hold_reason = None
                document.legal_hold_set_by = None
                document.legal_hold_set_at = None
            processed += 1

        self.audit.log(
            principal,
            "legal_hold_bulk_apply" if apply else "legal_hold_bulk_remove",
            "document",
            None,
            {"processed": processed, "failed": len(failed), "reason": reason},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        logger.info(
            "legal_hold_bulk",
            apply=apply,
            processed=processed,
            failed=len(failed),
            user_id=str(principal.id),
        )
        return schemas.BulkOperationResponse(processed=processed, failed=failed)
