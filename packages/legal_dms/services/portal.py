"""Client portal: a client's view of its own matters and documents."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session, selectinload

from .. import schemas
from ..models import Client, Document, DocumentMeta, Matter
from ..models.base import utcnow
from ..policy import Principal
from ..schema.enums import AuditRiskLevel, MatterStatus, UploaderType
from ..settings import DmsSettings
from .audit import AuditService
from .base import ServiceBase
from .documents import DocumentService, ObjectStore

__all__ = ["ClientPortalService", "CLIENT_ALLOWED_MIME_TYPES", "PRIVILEGED_VIEW_ROLES"]

logger = structlog.get_logger(__name__)

CLIENT_ALLOWED_MIME_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/jpeg",
    "image/png",
    "image/gif",
    "text/plain",
)

# may see confidential and privileged documents through the portal
PRIVILEGED_VIEW_ROLES = ("legal_professional", "firm_admin")

RECENT_WINDOW = dt.timedelta(days=30)


class ClientPortalService(ServiceBase):
    """클라이언트 포털."""

    def __init__(
        self,
        session: Session,
        settings: DmsSettings,
        storage: ObjectStore,
        audit: AuditService | None = None,
    ):
        super().__init__(session=session, settings=settings, audit=audit)
        self.storage = storage
        self.documents = DocumentService(session, settings, storage, audit=self.audit)

    def _client_for(self, principal: Principal) -> Client:
        """The client bound to *principal*: the first of its ``client_ids``."""

        self.authorize(principal, "read", "client_portal")
        if not principal.client_ids:
            raise PermissionError("User does not have client access")
        client = self.session.get(Client, principal.client_ids[0])
        if client is None:
            raise NoResultFound("Client not found")
        if principal.firm_id is not None and client.firm_id != principal.firm_id:
            raise PermissionError("User does not have client access")
        return client

    @staticmethod
    def _sees_privileged(principal: Principal) -> bool:
        return principal.has_any_role(*PRIVILEGED_VIEW_ROLES)

    def _visible_documents(self, client: Client, principal: Principal):
        stmt = (
            select(Document)
            .outerjoin(DocumentMeta, DocumentMeta.document_id == Document.id)
            .options(selectinload(Document.meta), selectinload(Document.matter))
            .where(Document.client_id == client.id, Document.is_deleted.is_(False))
        )
        if not self._sees_privileged(principal):
            stmt = stmt.where(
                or_(DocumentMeta.confidential.is_(None), DocumentMeta.confidential.is_(False)),
                or_(DocumentMeta.privileged.is_(None), DocumentMeta.privileged.is_(False)),
            )
        return stmt

    def _check_document_visible(self, document: Document, client: Client, principal: Principal) -> None:
        if document.is_deleted or document.client_id != client.id:
            raise NoResultFound("Document not found")
        meta = document.meta
        if meta is not None and (meta.confidential or meta.privileged):
            if not self._sees_privileged(principal):
                raise PermissionError("Access denied to this document")

    # ========================================================================
    # 대시보드
    # ========================================================================

    def dashboard(self, principal: Principal) -> schemas.PortalDashboardResponse:
        client = self._client_for(principal)

        def count(stmt) -> int:
            return self.session.execute(stmt).scalar_one()

        client_documents = (Document.client_id == client.id, Document.is_deleted.is_(False))
        total_matters = count(
            select(func.count()).select_from(Matter).where(Matter.client_id == client.id)
        )
        active_matters = count(
            select(func.count())
            .select_from(Matter)
            .where(Matter.client_id == client.id, Matter.status == MatterStatus.ACTIVE)
        )
        total_documents = count(
            select(func.count()).select_from(Document).where(*client_documents)
        )
        recent_documents = count(
            select(func.count())
            .select_from(Document)
            .where(*client_documents, Document.created_at >= utcnow() - RECENT_WINDOW)
        )
        confidential_documents = count(
            select(func.count())
            .select_from(Document)
            .join(DocumentMeta, DocumentMeta.document_id == Document.id)
            .where(*client_documents, DocumentMeta.confidential.is_(True))
        )

        matters = self.session.execute(
            select(Matter)
            .options(selectinload(Matter.client))
            .where(Matter.client_id == client.id)
            .order_by(Matter.updated_at.desc())
            .limit(5)
        ).scalars()
        documents = self.session.execute(
            self._visible_documents(client, principal)
            .order_by(Document.created_at.desc())
            .limit(10)
        ).scalars()

        return schemas.PortalDashboardResponse(
            client=schemas.ClientResponse.model_validate(client),
            stats=schemas.PortalStats(
                active_matters=active_matters,
                total_matters=total_matters,
                total_documents=total_documents,
                recent_documents=recent_documents,
                confidential_documents=confidential_documents,
            ),
            recent_matters=[
                schemas.MatterResponse.model_validate(matter).model_copy(
                    update={"client_name": client.name}
                )
                for matter in matters
            ],
            recent_documents=[schemas.DocumentResponse.model_validate(doc) for doc in documents],
        )

    # ========================================================================
    # 사건
    # ========================================================================

    def list_matters(
        self,
        principal: Principal,
        search: Optional[str] = None,
        status: Optional[MatterStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Matter], int]:
        client = self._client_for(principal)
        stmt = select(Matter).where(Matter.client_id == client.id)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Matter.title.ilike(pattern), Matter.description.ilike(pattern)))
        if status:
            stmt = stmt.where(Matter.status == status)
        return self.paginate(stmt.order_by(Matter.updated_at.desc()), page, limit)

    def get_matter(self, matter_id: uuid.UUID, principal: Principal) -> Matter:
        client = self._client_for(principal)
        matter = self.session.get(Matter, matter_id)
        if matter is None or matter.client_id != client.id:
            raise NoResultFound("Matter not found or access denied")
        return matter

    # ========================================================================
    # 문서
    # ========================================================================

    def list_documents(
        self,
        principal: Principal,
        search: Optional[str] = None,
        matter_id: Optional[uuid.UUID] = None,
        document_type: Optional[str] = None,
        tags: Optional[list[str]] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Document], int]:
        client = self._client_for(principal)
        # the portal list never shows confidential or privileged material
        stmt = (
            select(Document)
            .outerjoin(DocumentMeta, DocumentMeta.document_id == Document.id)
            .options(selectinload(Document.meta))
            .where(
                Document.client_id == client.id,
                Document.is_deleted.is_(False),
                or_(DocumentMeta.confidential.is_(None), DocumentMeta.confidential.is_(False)),
                or_(DocumentMeta.privileged.is_(None), DocumentMeta.privileged.is_(False)),
            )
        )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    DocumentMeta.title.ilike(pattern),
                    DocumentMeta.description.ilike(pattern),
                    Document.original_filename.ilike(pattern),
                )
            )
        if matter_id:
            stmt = stmt.where(Document.matter_id == matter_id)
        if document_type:
            stmt = stmt.where(DocumentMeta.document_type == document_type)
        for tag in tags or []:
            stmt = stmt.where(self.json_list_contains(DocumentMeta.tags, tag))
        return self.paginate(stmt.order_by(Document.created_at.desc()), page, limit)

    def get_document(self, document_id: uuid.UUID, principal: Principal) -> Document:
        client = self._client_for(principal)
        document = self.session.get(
            Document, document_id, options=[selectinload(Document.meta)]
        )
        if document is None:
            raise NoResultFound("Document not found")
        self._check_document_visible(document, client, principal)
        return document

    def download_document(
        self, document_id: uuid.UUID, principal: Principal
    ) -> tuple[Document, bytes]:
        document = self.get_document(document_id, principal)
        content = self.storage.download_file(document.object_key)
        self.audit.log(
            principal,
            "client_portal_download",
            "document",
            document.id,
            {"filename": document.original_filename},
            risk_level=AuditRiskLevel.MEDIUM,
            firm_id=document.firm_id,
        )
        self.session.commit()
        return document, content

    def upload_document(
        self,
        principal: Principal,
        payload: bytes,
        filename: str,
        content_type: Optional[str],
        metadata: schemas.DocumentUploadMetadata,
    ) -> Document:
        self.authorize(principal, "write", "client_portal")
        client = self._client_for(principal)
        matter = self.session.get(Matter, metadata.matter_id)
        if matter is None or matter.client_id != client.id:
            raise NoResultFound("Matter not found or access denied")
        if matter.status != MatterStatus.ACTIVE:
            raise ValueError("Uploads are only allowed to active matters")
        if content_type not in CLIENT_ALLOWED_MIME_TYPES:
            raise ValueError(f"File type {content_type} is not allowed")
        document = self.documents.store_document(
            principal,
            matter,
            payload,
            filename,
            content_type,
            metadata.model_copy(
                update={
                    "security_class": None,
                    "privileged": False,
                    "work_product": False,
                    "retention_class_id": None,
                }
            ),
            firm_id=matter.firm_id,
            max_bytes=self.settings.client_max_upload_bytes,
            uploader_type=UploaderType.CLIENT,
        )
        logger.info(
            "client_portal_upload",
            document_id=str(document.id),
            client_id=str(client.id),
        )
        return document

    def upload_settings(self, principal: Principal) -> schemas.PortalUploadSettings:
        client = self._client_for(principal)
        matters = self.session.execute(
            select(Matter)
            .where(Matter.client_id == client.id, Matter.status == MatterStatus.ACTIVE)
            .order_by(Matter.title)
        ).scalars()
        options = [
            schemas.PortalMatterOption(id=matter.id, title=matter.title, status=matter.status)
            for matter in matters
        ]
        return schemas.PortalUploadSettings(
            max_file_size=min(
                self.settings.client_max_upload_bytes, self.documents.upload_cap_bytes()
            ),
            allowed_file_types=list(CLIENT_ALLOWED_MIME_TYPES),
            accessible_matters=options,
            upload_enabled=bool(options),
        )
