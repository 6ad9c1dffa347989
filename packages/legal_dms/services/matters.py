"""Matter lifecycle and matter teams."""

from __future__ import annotations

import io
import json
import uuid
import zipfile
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session, selectinload

from .. import schemas
from ..clearance import can_access
from ..models import (
    AuditLog,
    Client,
    Document,
    DocumentMeta,
    Firm,
    Matter,
    MatterShare,
    MatterTeam,
    User,
)
from ..models.base import ensure_utc, utcnow
from ..policy import Principal
from ..schema.enums import AuditRiskLevel, MatterStatus
from ..settings import DmsSettings
from .audit import AuditService
from .base import ConflictError, ServiceBase
from .dashboard import format_storage
from .documents import HOLD_DOWNLOAD_ROLES, ObjectStore

__all__ = ["MatterExport", "MatterService"]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MatterExport:
    """ZIP archive of a matter and the manifest written into it."""

    filename: str
    content: bytes
    manifest: dict[str, Any]


class MatterService(ServiceBase):
    """사건 관리."""

    def __init__(
        self,
        session: Session,
        settings: DmsSettings,
        storage: Optional[ObjectStore] = None,
        audit: AuditService | None = None,
    ):
        super().__init__(session=session, settings=settings, audit=audit)
        self.storage = storage

    # ========================================================================
    # 접근 제어
    # ========================================================================

    def _get_matter(self, matter_id: uuid.UUID, principal: Principal) -> Matter:
        """Load a matter enforcing firm isolation and clearance."""

        matter = self.get_or_404(Matter, matter_id, "Matter")
        self.check_firm_access(principal, matter.firm_id)
        if not principal.is_super_admin and not can_access(
            principal.clearance_level, matter.security_class
        ):
            raise PermissionError("Insufficient clearance level for this matter")
        return matter

    def _validate_client(self, client_id: uuid.UUID, firm_id: uuid.UUID, principal: Principal) -> Client:
        client = self.session.get(Client, client_id)
        if client is None:
            raise NoResultFound("Client not found")
        if client.firm_id != firm_id and not principal.is_super_admin:
            raise PermissionError("Client does not belong to your firm")
        return client

    def documents_count(self, matter_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
        if not matter_ids:
            return {}
        rows = self.session.execute(
            select(Document.matter_id, func.count())
            .where(Document.matter_id.in_(matter_ids), Document.is_deleted.is_(False))
            .group_by(Document.matter_id)
        ).all()
        counts = dict(rows)
        return {matter_id: counts.get(matter_id, 0) for matter_id in matter_ids}

    # ========================================================================
    # 사건 CRUD
    # ========================================================================

    def create_matter(self, request: schemas.MatterCreateRequest, principal: Principal) -> Matter:
        self.authorize(principal, "write", "matter")
        firm_id = principal.firm_id
        if request.client_id is not None:
            client = self.session.get(Client, request.client_id)
            if client is None:
                raise NoResultFound("Client not found")
            if principal.is_super_admin:
                firm_id = client.firm_id
            elif client.firm_id != firm_id:
                raise PermissionError("Client does not belong to your firm")
        if firm_id is None:
            raise PermissionError("User must be associated with a firm")
        if not principal.is_super_admin and request.security_class > principal.clearance_level:
            raise PermissionError("Cannot create a matter above your clearance level")

        matter = Matter(
            firm_id=firm_id,
            client_id=request.client_id,
            title=request.title,
            description=request.description,
            status=request.status,
            security_class=request.security_class,
            created_by=principal.id,
        )
        self.session.add(matter)
        self.session.flush()
        self.audit.log(
            principal,
            "matter_create",
            "matter",
            matter.id,
            {"title": matter.title, "client_id": request.client_id},
        )
        self.session.commit()
        logger.info("matter_created", matter_id=str(matter.id), user_id=str(principal.id))
        return matter

    def list_matters(
        self,
        principal: Principal,
        search: Optional[str] = None,
        status: Optional[MatterStatus] = None,
        client_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Matter], int]:
        self.authorize(principal, "read", "matter")
        stmt = select(Matter).options(selectinload(Matter.client))
        if not principal.is_super_admin:
            stmt = stmt.where(
                Matter.firm_id == self.require_firm(principal),
                Matter.security_class <= principal.clearance_level,
            )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.outerjoin(Client, Matter.client_id == Client.id).where(
                or_(
                    Matter.title.ilike(pattern),
                    Matter.description.ilike(pattern),
                    Client.name.ilike(pattern),
                )
            )
        if status:
            stmt = stmt.where(Matter.status == status)
        if client_id:
            stmt = stmt.where(Matter.client_id == client_id)
        return self.paginate(stmt.order_by(Matter.created_at.desc()), page, limit)

    def get_matter(self, matter_id: uuid.UUID, principal: Principal) -> Matter:
        self.authorize(principal, "read", "matter")
        return self._get_matter(matter_id, principal)

    def update_matter(
        self, matter_id: uuid.UUID, request: schemas.MatterUpdateRequest, principal: Principal
    ) -> Matter:
        self.authorize(principal, "write", "matter")
        matter = self._get_matter(matter_id, principal)
        changes = request.model_dump(exclude_unset=True)
        if "client_id" in changes and changes["client_id"] is not None:
            self._validate_client(changes["client_id"], matter.firm_id, principal)
        security_class = changes.get("security_class")
        if (
            security_class is not None
            and not principal.is_super_admin
            and security_class > principal.clearance_level
        ):
            raise PermissionError("Cannot raise a matter above your clearance level")
        for field in ("title", "status", "security_class"):
            if field in changes and changes[field] is None:
                changes.pop(field)
        for field, value in changes.items():
            setattr(matter, field, value)
        self.audit.log(
            principal,
            "matter_update",
            "matter",
            matter.id,
            {"fields": sorted(changes)},
        )
        self.session.commit()
        return matter

    def update_status(
        self, matter_id: uuid.UUID, status: MatterStatus, principal: Principal
    ) -> Matter:
        self.authorize(principal, "write", "matter")
        matter = self._get_matter(matter_id, principal)
        previous = matter.status
        matter.status = status
        self.audit.log(
            principal,
            "matter_status_change",
            "matter",
            matter.id,
            {"from": getattr(previous, "value", previous), "to": status.value},
        )
        self.session.commit()
        return matter

    def delete_matter(self, matter_id: uuid.UUID, principal: Principal) -> None:
        self.authorize(principal, "delete", "matter")
        matter = self._get_matter(matter_id, principal)
        live_documents = self.session.execute(
            select(func.count()).where(
                Document.matter_id == matter.id, Document.is_deleted.is_(False)
            )
        ).scalar_one()
        if live_documents:
            raise ValueError(
                f"Cannot delete matter with {live_documents} document(s); delete or move them first"
            )
        # soft-deleted rows and shares go with the matter
        for document in self.session.execute(
            select(Document).where(Document.matter_id == matter.id)
        ).scalars():
            self.session.delete(document)
        for share in self.session.execute(
            select(MatterShare).where(MatterShare.matter_id == matter.id)
        ).scalars():
            self.session.delete(share)
        self.session.delete(matter)
        self.audit.log(
            principal,
            "matter_delete",
            "matter",
            matter_id,
            {"title": matter.title},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()

    def list_matter_documents(self, matter_id: uuid.UUID, principal: Principal) -> list[Document]:
        self.authorize(principal, "read", "document")
        matter = self._get_matter(matter_id, principal)
        stmt = (
            select(Document)
            .options(selectinload(Document.meta))
            .where(
                Document.matter_id == matter.id,
                Document.is_deleted.is_(False),
                or_(
                    Document.security_class.is_(None),
                    Document.security_class <= principal.clearance_level,
                ),
            )
            .order_by(Document.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def audit_history(self, matter_id: uuid.UUID, principal: Principal) -> list[AuditLog]:
        self.authorize(principal, "read", "matter")
        matter = self._get_matter(matter_id, principal)
        return self.audit.matter_history(matter.id)

    # ========================================================================
    # 사건 팀
    # ========================================================================

    def list_team(self, matter_id: uuid.UUID, principal: Principal) -> list[MatterTeam]:
        self.authorize(principal, "read", "matter")
        matter = self._get_matter(matter_id, principal)
        stmt = (
            select(MatterTeam)
            .options(selectinload(MatterTeam.user))
            .where(MatterTeam.matter_id == matter.id)
            .order_by(MatterTeam.added_at)
        )
        return list(self.session.execute(stmt).scalars())

    def add_team_member(
        self,
        matter_id: uuid.UUID,
        request: schemas.TeamMemberAddRequest,
        principal: Principal,
    ) -> MatterTeam:
        self.authorize(principal, "write", "matter")
        matter = self._get_matter(matter_id, principal)
        user = self.get_or_404(User, request.user_id, "User")
        if user.firm_id != matter.firm_id:
            raise ValueError("Team members must belong to the matter's firm")
        if not user.is_active:
            raise ValueError("Cannot add an inactive user to a matter team")
        existing = self.session.execute(
            select(MatterTeam.id).where(
                MatterTeam.matter_id == matter.id, MatterTeam.user_id == user.id
            )
        ).first()
        if existing:
            raise ConflictError("User is already a member of this matter team")

        member = MatterTeam(
            matter_id=matter.id,
            user_id=user.id,
            role=request.role,
            access_level=request.access_level,
            added_by=principal.id,
        )
        self.session.add(member)
        self.session.flush()
        self.audit.log(
            principal,
            "matter_team_add",
            "matter",
            matter.id,
            {"user_id": user.id, "role": request.role.value},
        )
        self.session.commit()
        return member

    def remove_team_member(
        self, matter_id: uuid.UUID, user_id: uuid.UUID, principal: Principal
    ) -> None:
        self.authorize(principal, "write", "matter")
        matter = self._get_matter(matter_id, principal)
        member = self.session.execute(
            select(MatterTeam).where(
                MatterTeam.matter_id == matter.id, MatterTeam.user_id == user_id
            )
        ).scalar_one_or_none()
        if member is None:
            raise NoResultFound("Team member not found")
        self.session.delete(member)
        self.audit.log(
            principal, "matter_team_remove", "matter", matter.id, {"user_id": user_id}
        )
        self.session.commit()

    # ========================================================================
    # 내보내기
    # ========================================================================

    def _export_documents(
        self, matter: Matter, options: schemas.MatterExportRequest, principal: Principal
    ) -> list[Document]:
        stmt = (
            select(Document)
            .outerjoin(DocumentMeta, DocumentMeta.document_id == Document.id)
            .options(selectinload(Document.meta), selectinload(Document.matter))
            .where(Document.matter_id == matter.id, Document.is_deleted.is_(False))
        )
        if options.document_types:
            stmt = stmt.where(DocumentMeta.document_type.in_(options.document_types))
        if options.date_from is not None:
            stmt = stmt.where(Document.created_at >= options.date_from)
        if options.date_to is not None:
            stmt = stmt.where(Document.created_at <= options.date_to)
        if options.confidentiality_levels:
            flags = {
                "public": and_(
                    DocumentMeta.confidential.is_(False),
                    DocumentMeta.privileged.is_(False),
                    DocumentMeta.work_product.is_(False),
                ),
                "confidential": DocumentMeta.confidential.is_(True),
                "privileged": DocumentMeta.privileged.is_(True),
                "work_product": DocumentMeta.work_product.is_(True),
            }
            stmt = stmt.where(or_(*(flags[level] for level in options.confidentiality_levels)))
        documents = self.session.execute(stmt.order_by(Document.created_at)).scalars().all()
        if principal.is_super_admin:
            return list(documents)
        return [
            document
            for document in documents
            if can_access(principal.clearance_level, document.effective_security_class)
        ]

    @staticmethod
    def _confidentiality(document: Document) -> str:
        meta = document.meta
        if meta is None:
            return "public"
        if meta.privileged:
            return "privileged"
        if meta.work_product:
            return "work_product"
        if meta.confidential:
            return "confidential"
        return "public"

    def export_matter(
        self,
        matter_id: uuid.UUID,
        options: schemas.MatterExportRequest,
        principal: Principal,
    ) -> MatterExport:
        """Build a ZIP with the matter's documents, a manifest and a summary.

        Documents above the caller's clearance are left out. Documents under
        legal hold are listed but their content is only included for roles
        that may download held documents.
        """

        self.authorize(principal, "read", "matter")
        self.authorize(principal, "read", "document")
        if options.include_documents and self.storage is None:
            raise RuntimeError("Object storage is not configured")
        matter = self._get_matter(matter_id, principal)
        documents = self._export_documents(matter, options, principal)
        may_read_held = principal.has_any_role(*HOLD_DOWNLOAD_ROLES)
        now = utcnow()
        firm = self.session.get(Firm, matter.firm_id)

        entries = []
        for index, document in enumerate(documents, start=1):
            meta = document.meta
            entry = {
                "id": str(document.id),
                "original_filename": document.original_filename,
                "file_size": document.size_bytes,
                "mime_type": document.mime_type,
                "version": document.version,
                "uploaded_at": ensure_utc(document.created_at).isoformat(),
                "tags": list(meta.tags) if meta is not None else [],
                "confidentiality": self._confidentiality(document),
                "legal_hold": document.legal_hold,
                "export_path": f"documents/{index:03d}_{document.original_filename}",
                "included": options.include_documents,
            }
            if options.include_documents and document.legal_hold and not may_read_held:
                entry["included"] = False
                entry["excluded_reason"] = "legal_hold"
            entries.append(entry)

        total_size = sum(document.size_bytes for document in documents)
        manifest: dict[str, Any] = {
            "matter": {
                "id": str(matter.id),
                "title": matter.title,
                "matter_number": str(matter.id)[-8:],
                "client_name": matter.client.name if matter.client else None,
                "description": matter.description,
                "status": matter.status.value,
                "security_class": matter.security_class,
                "created_at": ensure_utc(matter.created_at).isoformat(),
                "updated_at": ensure_utc(matter.updated_at).isoformat(),
            },
            "export": {
                "generated_at": now.isoformat(),
                "generated_by": principal.display_name,
                "firm_name": firm.name if firm else None,
                "options": options.model_dump(mode="json"),
                "total_documents": len(documents),
                "total_size_bytes": total_size,
            },
            "documents": entries,
        }

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            if options.include_metadata:
                archive.writestr("manifest.json", json.dumps(manifest, indent=2))
                summary = {
                    "matter": manifest["matter"],
                    "export_summary": {
                        "total_documents": len(documents),
                        "total_size": format_storage(total_size),
                        "export_date": manifest["export"]["generated_at"],
                        "exported_by": principal.display_name,
                    },
                    "document_summary": [
                        {
                            "filename": entry["original_filename"],
                            "type": entry["mime_type"],
                            "uploaded": entry["uploaded_at"][:10],
                            "confidentiality": entry["confidentiality"],
                        }
                        for entry in entries
                    ],
                }
                archive.writestr("matter_info.json", json.dumps(summary, indent=2))
            for document, entry in zip(documents, entries):
                if entry["included"]:
                    archive.writestr(
                        entry["export_path"], self.storage.download_file(document.object_key)
                    )
            if options.include_audit_trail:
                trail = [
                    schemas.AuditLogEntry.model_validate(item).model_dump(mode="json")
                    for item in self.audit.matter_history(matter.id)
                ]
                archive.writestr("audit_trail.json", json.dumps(trail, indent=2))

        self.audit.log(
            principal,
            "matter_export",
            "matter",
            matter.id,
            {
                "documents": len(documents),
                "included": sum(1 for entry in entries if entry["included"]),
                "total_size_bytes": total_size,
            },
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        logger.info(
            "matter_exported",
            matter_id=str(matter.id),
            documents=len(documents),
            user_id=str(principal.id),
        )
        return MatterExport(
            filename=f"matter_export_{str(matter.id)[-8:]}_{now:%Y-%m-%d}.zip",
            content=buffer.getvalue(),
            manifest=manifest,
        )
