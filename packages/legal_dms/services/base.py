"""Shared plumbing for DMS services."""

from __future__ import annotations

import json
import uuid
from typing import TypeVar

from sqlalchemy import Select, String, cast, func, select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session

from ..models import read_system_setting
from ..policy import Principal, authorize
from ..settings import DmsSettings
from .audit import AuditService

__all__ = ["ConflictError", "ServiceBase", "clamp_page"]

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class ConflictError(ValueError):
    """Request conflicts with existing state (HTTP 409)."""


def clamp_page(page: int, limit: int) -> tuple[int, int]:
    return max(page, 1), min(max(limit, 1), MAX_PAGE_SIZE)


class ServiceBase:
    """Session, settings and audit trail shared by every service."""

    def __init__(
        self,
        session: Session,
        settings: DmsSettings,
        audit: AuditService | None = None,
    ):
        self.session = session
        self.settings = settings
        self.audit = audit or AuditService(session=session, settings=settings)

    # ------------------------------------------------------------------ checks
    @staticmethod
    def authorize(principal: Principal, action: str, resource: str) -> None:
        authorize(principal, action, resource)

    @staticmethod
    def require_firm(principal: Principal) -> uuid.UUID:
        if principal.firm_id is None:
            raise PermissionError("User must be associated with a firm")
        return principal.firm_id

    @staticmethod
    def check_firm_access(principal: Principal, firm_id: uuid.UUID) -> None:
        """Firm isolation; super_admin may cross tenants."""

        if principal.is_super_admin:
            return
        if principal.firm_id != firm_id:
            raise PermissionError("Access denied to resources of another firm")

    def get_or_404(self, model: type[T], ident: uuid.UUID, label: str) -> T:
        instance = self.session.get(model, ident)
        if instance is None:
            raise NoResultFound(f"{label} not found")
        return instance

    def system_setting(self, key: str):
        return read_system_setting(self.session, key)

    # ----------------------------------------------------------------- filters
    def json_list_contains(self, column, value: str):
        """Clause matching rows whose JSON list *column* holds *value*."""

        if self.session.get_bind().dialect.name == "postgresql":
            return type_coerce(column, JSONB).contains([value])
        return cast(column, String).contains(json.dumps(value), autoescape=True)

    # -------------------------------------------------------------- pagination
    def paginate(self, stmt: Select, page: int, limit: int) -> tuple[list, int]:
        page, limit = clamp_page(page, limit)
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(stmt.limit(limit).offset((page - 1) * limit))
        return list(rows.scalars().unique()), total
