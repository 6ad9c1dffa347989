"""Client management."""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import func, or_, select

from .. import schemas
from ..models import Client, Document, Firm, Matter
from ..policy import Principal
from ..schema.enums import AuditRiskLevel
from .base import ConflictError, ServiceBase

__all__ = ["ClientService"]

logger = structlog.get_logger(__name__)


class ClientService(ServiceBase):
    """의뢰인 관리."""

    def _get_client(self, client_id: uuid.UUID, principal: Principal) -> Client:
        client = self.get_or_404(Client, client_id, "Client")
        self.check_firm_access(principal, client.firm_id)
        return client

    def _ensure_ref_free(
        self, firm_id: uuid.UUID, external_ref: Optional[str], exclude: Optional[uuid.UUID] = None
    ) -> None:
        if not external_ref:
            return
        stmt = select(Client.id).where(
            Client.firm_id == firm_id, Client.external_ref == external_ref
        )
        if exclude is not None:
            stmt = stmt.where(Client.id != exclude)
        if self.session.execute(stmt).first():
            raise ConflictError(
                f"Client with external reference '{external_ref}' already exists in this firm"
            )

    def counts_for(self, client_ids: list[uuid.UUID]) -> dict[uuid.UUID, tuple[int, int]]:
        """``{client_id: (matter_count, document_count)}`` in two queries."""

        if not client_ids:
            return {}
        matters = dict(
            self.session.execute(
                select(Matter.client_id, func.count())
                .where(Matter.client_id.in_(client_ids))
                .group_by(Matter.client_id)
            ).all()
        )
        documents = dict(
            self.session.execute(
                select(Document.client_id, func.count())
                .where(Document.client_id.in_(client_ids), Document.is_deleted.is_(False))
                .group_by(Document.client_id)
            ).all()
        )
        return {cid: (matters.get(cid, 0), documents.get(cid, 0)) for cid in client_ids}

    # ========================================================================
    # CRUD
    # ========================================================================

    def create_client(self, request: schemas.ClientCreateRequest, principal: Principal) -> Client:
        self.authorize(principal, "write", "client")
        if principal.is_super_admin and request.firm_id is not None:
            firm_id = request.firm_id
            firm = self.session.get(Firm, firm_id)
            if firm is None or firm.deleted_at is not None:
                raise ValueError("Firm does not exist")
        else:
            firm_id = self.require_firm(principal)
        self._ensure_ref_free(firm_id, request.external_ref)

        client = Client(
            firm_id=firm_id,
            **request.model_dump(exclude={"firm_id"}),
        )
        self.session.add(client)
        self.session.flush()
        self.audit.log(principal, "client_create", "client", client.id, {"name": client.name})
        self.session.commit()
        logger.info("client_created", client_id=str(client.id), firm_id=str(firm_id))
        return client

    def list_clients(
        self,
        principal: Principal,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Client], int]:
        self.authorize(principal, "read", "client")
        stmt = select(Client)
        if not principal.is_super_admin:
            stmt = stmt.where(Client.firm_id == self.require_firm(principal))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Client.name.ilike(pattern),
                    Client.contact_email.ilike(pattern),
                    Client.external_ref.ilike(pattern),
                )
            )
        if status:
            stmt = stmt.where(Client.status == status)
        return self.paginate(stmt.order_by(Client.name), page, limit)

    def get_client(self, client_id: uuid.UUID, principal: Principal) -> Client:
        self.authorize(principal, "read", "client")
        return self._get_client(client_id, principal)

    def update_client(
        self, client_id: uuid.UUID, request: schemas.ClientUpdateRequest, principal: Principal
    ) -> Client:
        self.authorize(principal, "write", "client")
        client = self._get_client(client_id, principal)
        changes = request.model_dump(exclude_unset=True)
        if changes.get("external_ref"):
            self._ensure_ref_free(client.firm_id, changes["external_ref"], exclude=client.id)
        if changes.get("name") is None:
            changes.pop("name", None)
        if changes.get("status") is None:
            changes.pop("status", None)
        for field, value in changes.items():
            setattr(client, field, value)
        self.audit.log(principal, "client_update", "client", client.id, {"fields": sorted(changes)})
        self.session.commit()
        return client

    def delete_client(self, client_id: uuid.UUID, principal: Principal) -> None:
        self.authorize(principal, "delete", "client")
        client = self._get_client(client_id, principal)
        matter_count = self.session.execute(
            select(func.count()).where(Matter.client_id == client.id)
        ).scalar_one()
        if matter_count:
            raise ConflictError(
                f"Cannot delete client with {matter_count} associated matter(s)"
            )
        self.session.delete(client)
        self.audit.log(
            principal,
            "client_delete",
            "client",
            client_id,
            {"name": client.name},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()

    # ========================================================================
    # 연관 리소스
    # ========================================================================

    def list_client_matters(self, client_id: uuid.UUID, principal: Principal) -> list[Matter]:
        self.authorize(principal, "read", "matter")
        client = self._get_client(client_id, principal)
        stmt = (
            select(Matter)
            .where(
                Matter.client_id == client.id,
                Matter.security_class <= principal.clearance_level,
            )
            .order_by(Matter.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def list_client_documents(self, client_id: uuid.UUID, principal: Principal) -> list[Document]:
        self.authorize(principal, "read", "document")
        client = self._get_client(client_id, principal)
        stmt = (
            select(Document)
            .join(Matter, Document.matter_id == Matter.id)
            .where(
                Document.client_id == client.id,
                Document.is_deleted.is_(False),
                Matter.security_class <= principal.clearance_level,
                or_(
                    Document.security_class.is_(None),
                    Document.security_class <= principal.clearance_level,
                ),
            )
            .order_by(Document.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())
