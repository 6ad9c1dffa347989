"""Firm (tenant) administration."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import NoResultFound

from .. import schemas
from ..clearance import recommended_level, validate_level
from ..models import Client, Document, Firm, Matter, User
from ..models.base import utcnow
from ..policy import Principal
from ..schema.enums import AuditRiskLevel
from .base import ConflictError, ServiceBase

__all__ = ["FirmService"]

logger = structlog.get_logger(__name__)


class FirmService(ServiceBase):
    """로펌 관리 (super_admin 전용)."""

    def _get_firm(self, firm_id: uuid.UUID, include_deleted: bool = False) -> Firm:
        firm = self.get_or_404(Firm, firm_id, "Firm")
        if firm.deleted_at is not None and not include_deleted:
            raise NoResultFound("Firm not found")
        return firm

    def create_firm(self, request: schemas.FirmCreateRequest, principal: Principal) -> Firm:
        self.authorize(principal, "write", "firm")
        firm = Firm(
            name=request.name,
            external_ref=request.external_ref,
            settings=dict(request.settings),
        )
        self.session.add(firm)
        self.session.flush()
        self.audit.log(principal, "firm_create", "firm", firm.id, {"name": firm.name})
        self.session.commit()
        logger.info("firm_created", firm_id=str(firm.id), user_id=str(principal.id))
        return firm

    def list_firms(
        self,
        principal: Principal,
        search: Optional[str] = None,
        include_deleted: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Firm], int]:
        self.authorize(principal, "read", "firm")
        stmt = select(Firm)
        if not include_deleted:
            stmt = stmt.where(Firm.deleted_at.is_(None))
        if search:
            stmt = stmt.where(Firm.name.ilike(f"%{search}%"))
        return self.paginate(stmt.order_by(Firm.name), page, limit)

    def get_firm(self, firm_id: uuid.UUID, principal: Principal) -> Firm:
        self.authorize(principal, "read", "firm")
        return self._get_firm(firm_id)

    def update_firm(
        self, firm_id: uuid.UUID, request: schemas.FirmUpdateRequest, principal: Principal
    ) -> Firm:
        self.authorize(principal, "write", "firm")
        firm = self._get_firm(firm_id)
        changes = request.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        for field, value in changes.items():
            setattr(firm, field, value)
        self.audit.log(principal, "firm_update", "firm", firm.id, {"changes": changes})
        self.session.commit()
        return firm

    def delete_firm(self, firm_id: uuid.UUID, principal: Principal) -> None:
        """Soft delete; data is retained for retention and audit purposes."""
        self.authorize(principal, "write", "firm")
        firm = self._get_firm(firm_id)
        firm.deleted_at = utcnow()
        self.audit.log(
            principal, "firm_delete", "firm", firm.id, risk_level=AuditRiskLevel.HIGH
        )
        self.session.commit()

    def onboard_firm(
        self, request: schemas.FirmOnboardRequest, principal: Principal
    ) -> tuple[Firm, User]:
        """Create a firm and its first firm_admin in one transaction."""
        self.authorize(principal, "write", "firm")
        email = request.admin_email.lower()
        if self.session.execute(select(User.id).where(User.email == email)).first():
            raise ConflictError(f"User with email {email} already exists")

        roles = ["firm_admin"]
        level = request.admin_clearance_level or recommended_level(roles)
        check = validate_level(level, roles)
        if not check.valid:
            raise ValueError(check.message)

        firm = Firm(
            name=request.name,
            external_ref=request.external_ref,
            settings=dict(request.settings),
        )
        self.session.add(firm)
        self.session.flush()
        admin = User(
            firm_id=firm.id,
            email=email,
            display_name=request.admin_display_name,
            roles=roles,
            attributes={},
            clearance_level=level,
        )
        self.session.add(admin)
        self.session.flush()
        self.audit.log(
            principal,
            "firm_onboard",
            "firm",
            firm.id,
            {"admin_user_id": admin.id, "admin_email": email},
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        logger.info("firm_onboarded", firm_id=str(firm.id), admin_user_id=str(admin.id))
        return firm, admin

    def get_settings(self, firm_id: uuid.UUID, principal: Principal) -> dict:
        self.authorize(principal, "read", "firm")
        return dict(self._get_firm(firm_id).settings or {})

    def update_settings(
        self,
        firm_id: uuid.UUID,
        request: schemas.FirmSettingsUpdateRequest,
        principal: Principal,
    ) -> dict:
        """Merge *request.settings* into the stored settings."""
        self.authorize(principal, "write", "firm")
        firm = self._get_firm(firm_id)
        merged = {**(firm.settings or {}), **request.settings}
        firm.settings = merged
        self.audit.log(
            principal,
            "firm_settings_update",
            "firm",
            firm.id,
            {"keys": sorted(request.settings)},
        )
        self.session.commit()
        return merged

    def get_stats(self, firm_id: uuid.UUID, principal: Principal) -> schemas.FirmStatsResponse:
        self.authorize(principal, "read", "firm")
        firm = self._get_firm(firm_id)

        def count(stmt) -> int:
            return int(self.session.execute(stmt).scalar_one() or 0)

        live_docs = (Document.firm_id == firm.id) & (Document.is_deleted.is_(False))
        by_status = {
            status.value if hasattr(status, "value") else str(status): total
            for status, total in self.session.execute(
                select(Matter.status, func.count())
                .where(Matter.firm_id == firm.id)
                .group_by(Matter.status)
            )
        }
        return schemas.FirmStatsResponse(
            firm_id=firm.id,
            total_users=count(select(func.count()).where(User.firm_id == firm.id)),
            active_users=count(
                select(func.count()).where(User.firm_id == firm.id, User.is_active.is_(True))
            ),
            total_clients=count(select(func.count()).where(Client.firm_id == firm.id)),
            total_matters=sum(by_status.values()),
            matters_by_status=by_status,
            total_documents=count(select(func.count()).where(live_docs)),
            storage_used_bytes=count(
                select(func.coalesce(func.sum(Document.size_bytes), 0)).where(live_docs)
            ),
            documents_on_legal_hold=count(
                select(func.count()).where(live_docs, Document.legal_hold.is_(True))
            ),
        )
