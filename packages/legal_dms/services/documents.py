"""Document upload, retrieval, deletion and legal holds."""

from __future__ import annotations

import hashlib
import time
import uuid
from pathlib import PurePath
from typing import Optional, Protocol

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session, selectinload

from .. import schemas
from ..clearance import can_access
from ..extraction import ExtractionError, extract_text
from ..models import Document, DocumentMeta, Matter, RetentionClass
from ..models.base import utcnow
from ..policy import Principal
from ..schema.enums import AuditOutcome, AuditRiskLevel, UploaderType
from ..settings import DmsSettings
from .audit import AuditService
from .base import ServiceBase

__all__ = ["DocumentService", "ObjectStore", "build_object_key"]

logger = structlog.get_logger(__name__)

_MB = 1024 * 1024

# roles that may download documents under legal hold
HOLD_DOWNLOAD_ROLES = ("legal_manager", "firm_admin", "super_admin")


class ObjectStore(Protocol):
    """Subset of :class:`ObjectStorageClient` used by the services."""

    def upload_file(self, file_content, key, content_type=None, metadata=None): ...

    def download_file(self, key: str) -> bytes: ...

    def delete_file(self, key: str) -> None: ...

    def generate_presigned_download_url(self, key, expiry=None, filename=None) -> str: ...


def build_object_key(firm_id: uuid.UUID, matter_id: uuid.UUID, filename: str) -> str:
    """``documents/{firm}/{matter}/{epoch_ms}-{uuid}{ext}``."""

    suffix = PurePath(filename or "").suffix.lower()[:16]
    return f"documents/{firm_id}/{matter_id}/{int(time.time() * 1000)}-{uuid.uuid4()}{suffix}"


class DocumentService(ServiceBase):
    """문서 관리."""

    def __init__(
        self,
        session: Session,
        settings: DmsSettings,
        storage: ObjectStore,
        audit: AuditService | None = None,
    ):
        super().__init__(session=session, settings=settings, audit=audit)
        self.storage = storage

    # ========================================================================
    # 접근 제어
    # ========================================================================

    @staticmethod
    def check_clearance(principal: Principal, document: Document) -> None:
        if principal.is_super_admin:
            return
        if not can_access(principal.clearance_level, document.effective_security_class):
            raise PermissionError("Insufficient clearance level for this document")

    def _get_document(self, document_id: uuid.UUID, principal: Principal) -> Document:
        document = self.session.get(
            Document, document_id, options=[selectinload(Document.meta)]
        )
        if document is None or document.is_deleted:
            raise NoResultFound("Document not found")
        self.check_firm_access(principal, document.firm_id)
        self.check_clearance(principal, document)
        return document

    def upload_cap_bytes(self) -> int:
        """Platform-wide upload ceiling from system settings."""
        return int(self.system_setting("max_file_size_mb")) * _MB

    def download_url(self, document: Document) -> Optional[str]:
        return self.storage.generate_presigned_download_url(
            document.object_key,
            expiry=self.settings.presigned_url_expiry,
            filename=document.original_filename,
        )

    # ========================================================================
    # 업로드
    # ========================================================================

    def upload_document(
        self,
        principal: Principal,
        payload: bytes,
        filename: str,
        content_type: Optional[str],
        metadata: schemas.DocumentUploadMetadata,
    ) -> Document:
        self.authorize(principal, "write", "document")
        firm_id = self.require_firm(principal)
        matter = self.session.get(Matter, metadata.matter_id)
        if matter is None:
            raise NoResultFound("Matter not found")
        self.check_firm_access(principal, matter.firm_id)
        if not principal.is_super_admin:
            if not can_access(principal.clearance_level, matter.security_class):
                raise PermissionError("Insufficient clearance level for this matter")
            if metadata.security_class and metadata.security_class > principal.clearance_level:
                raise PermissionError("Cannot classify a document above your clearance level")
        return self.store_document(
            principal,
            matter,
            payload,
            filename,
            content_type,
            metadata,
            firm_id=matter.firm_id if principal.is_super_admin else firm_id,
            max_bytes=self.settings.max_upload_bytes,
            uploader_type=UploaderType.LEGAL_STAFF,
        )

    def store_document(
        self,
        principal: Principal,
        matter: Matter,
        payload: bytes,
        filename: str,
        content_type: Optional[str],
        metadata: schemas.DocumentUploadMetadata,
        *,
        firm_id: uuid.UUID,
        max_bytes: int,
        uploader_type: UploaderType,
    ) -> Document:
        """Persist content and rows; callers have done authorization.

        The stored object is removed again if the database write fails.
        """

        if not payload:
            raise ValueError("File is empty")
        max_bytes = min(max_bytes, self.upload_cap_bytes())
        if len(payload) > max_bytes:
            raise ValueError(f"File size {len(payload)} exceeds maximum {max_bytes} bytes")
        filename = PurePath(filename or "upload").name or "upload"
        mime_type = content_type or "application/octet-stream"

        if metadata.retention_class_id is not None:
            retention_class = self.session.get(RetentionClass, metadata.retention_class_id)
            if retention_class is None or retention_class.firm_id != firm_id:
                raise ValueError("Retention class does not exist in this firm")

        version = 1
        if metadata.parent_document_id is not None:
            parent = self.session.get(Document, metadata.parent_document_id)
            if parent is None or parent.is_deleted or parent.matter_id != matter.id:
                raise ValueError("Parent document must be an existing document of the same matter")
            version = parent.version + 1

        checksum = hashlib.sha256(payload).hexdigest()
        key = build_object_key(firm_id, matter.id, filename)
        self.storage.upload_file(
            payload,
            key,
            content_type=mime_type,
            metadata={"sha256": checksum, "uploaded-by": str(principal.id)},
        )

        try:
            document = Document(
                matter_id=matter.id,
                firm_id=firm_id,
                client_id=matter.client_id,
                object_key=key,
                content_sha256=checksum,
                original_filename=filename,
                size_bytes=len(payload),
                mime_type=mime_type,
                version=version,
                parent_document_id=metadata.parent_document_id,
                retention_class_id=metadata.retention_class_id,
                security_class=metadata.security_class,
                uploaded_by_type=uploader_type,
                created_by=principal.id,
            )
            meta = DocumentMeta(
                title=metadata.title or filename,
                description=metadata.description,
                tags=list(metadata.tags),
                parties=list(metadata.parties),
                jurisdiction=metadata.jurisdiction,
                document_type=metadata.document_type,
                document_date=metadata.document_date,
                effective_date=metadata.effective_date,
                expiry_date=metadata.expiry_date,
                confidential=metadata.confidential,
                privileged=metadata.privileged,
                work_product=metadata.work_product,
                custom_fields=dict(metadata.custom_fields),
            )
            if self.system_setting("enable_ocr"):
                self._attach_text(meta, payload, filename, mime_type)
            document.meta = meta
            self.session.add(document)
            self.session.flush()
            self.audit.log(
                principal,
                "document_upload",
                "document",
                document.id,
                {
                    "matter_id": matter.id,
                    "filename": filename,
                    "size_bytes": len(payload),
                    "version": version,
                    "uploaded_by_type": uploader_type.value,
                },
                firm_id=firm_id,
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            self._discard_object(key)
            raise

        logger.info(
            "document_uploaded",
            document_id=str(document.id),
            matter_id=str(matter.id),
            size_bytes=len(payload),
        )
        return document

    def _attach_text(self, meta: DocumentMeta, payload: bytes, filename: str, mime_type: str) -> None:
        try:
            extracted = extract_text(payload, filename, mime_type)
        except ExtractionError as exc:
            logger.warning("text_extraction_failed", filename=filename, error=str(exc))
            return
        if extracted is None:
            return
        meta.extracted_text = extracted.text or None
        meta.pages = extracted.pages

    def _discard_object(self, key: str) -> None:
        try:
            self.storage.delete_file(key)
        except Exception:
            logger.exception("orphaned_object_cleanup_failed", key=key)

    # ========================================================================
    # 조회
    # ========================================================================

    def list_documents(
        self,
        principal: Principal,
        search: Optional[str] = None,
        matter_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
        document_type: Optional[str] = None,
        tags: Optional[list[str]] = None,
        confidential: Optional[bool] = None,
        legal_hold: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Document], int]:
        self.authorize(principal, "read", "document")
        stmt = (
            select(Document)
            .join(Matter, Document.matter_id == Matter.id)
            .outerjoin(DocumentMeta, DocumentMeta.document_id == Document.id)
            .options(selectinload(Document.meta))
            .where(Document.is_deleted.is_(False))
        )
        if not principal.is_super_admin:
            stmt = stmt.where(
                Document.firm_id == self.require_firm(principal),
                Matter.security_class <= principal.clearance_level,
                or_(
                    Document.security_class.is_(None),
                    Document.security_class <= principal.clearance_level,
                ),
            )
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    DocumentMeta.title.ilike(pattern),
                    DocumentMeta.description.ilike(pattern),
                    Document.original_filename.ilike(pattern),
                    DocumentMeta.extracted_text.ilike(pattern),
                )
            )
        if matter_id:
            stmt = stmt.where(Document.matter_id == matter_id)
        if client_id:
            stmt = stmt.where(Document.client_id == client_id)
        if document_type:
            stmt = stmt.where(DocumentMeta.document_type == document_type)
        for tag in tags or []:
            # every requested tag must be present
            stmt = stmt.where(self.json_list_contains(DocumentMeta.tags, tag))
        if confidential is not None:
            stmt = stmt.where(DocumentMeta.confidential.is_(confidential))
        if legal_hold is not None:
            stmt = stmt.where(Document.legal_hold.is_(legal_hold))
        return self.paginate(stmt.order_by(Document.created_at.desc()), page, limit)

    def get_document(self, document_id: uuid.UUID, principal: Principal) -> Document:
        self.authorize(principal, "read", "document")
        return self._get_document(document_id, principal)

    def download_document(
        self, document_id: uuid.UUID, principal: Principal
    ) -> tuple[Document, bytes]:
        self.authorize(principal, "read", "document")
        document = self._get_document(document_id, principal)
        if document.legal_hold and not principal.has_any_role(*HOLD_DOWNLOAD_ROLES):
            self.audit.log(
                principal,
                "document_download",
                "document",
                document.id,
                {"reason": "legal_hold"},
                risk_level=AuditRiskLevel.HIGH,
                outcome=AuditOutcome.FAILURE,
            )
            self.session.commit()
            raise PermissionError(
                "Document is under legal hold; download requires legal_manager or firm_admin"
            )
        content = self.storage.download_file(document.object_key)
        self.audit.log(
            principal,
            "document_download",
            "document",
            document.id,
            {"filename": document.original_filename, "size_bytes": document.size_bytes},
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        return document, content

    # ========================================================================
    # 삭제 / 법적 보존
    # ========================================================================

    def delete_document(self, document_id: uuid.UUID, principal: Principal) -> None:
        """Soft delete; content stays in storage for retention."""
        self.authorize(principal, "delete", "document")
        document = self._get_document(document_id, principal)
        if document.legal_hold:
            raise PermissionError("Cannot delete document under legal hold")
        document.is_deleted = True
        document.deleted_at = utcnow()
        self.audit.log(
            principal,
            "document_delete",
            "document",
            document.id,
            {"filename": document.original_filename},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()

    def set_legal_hold(
        self, document_id: uuid.UUID, reason: str, principal: Principal
    ) -> Document:
        self.authorize(principal, "write", "legal_hold")
        if not self.system_setting("enable_legal_holds"):
            raise PermissionError("Legal holds are disabled in system settings")
        document = self._get_document(document_id, principal)
        document.legal_hold = True
        document.legal_hold_reason = reason
        document.legal_hold_set_by = principal.id
        document.legal_hold_set_at = utcnow()
        self.audit.log(
            principal,
            "legal_hold_apply",
            "document",
            document.id,
            {"reason": reason},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        return document

    def remove_legal_hold(self, document_id: uuid.UUID, principal: Principal) -> Document:
        self.authorize(principal, "write", "legal_hold")
        document = self._get_document(document_id, principal)
        if not document.legal_hold:
            raise ValueError("Document is not under legal hold")
        previous_reason = document.legal_hold_reason
        document.legal_hold = False
        document.legal_hold_reason = None
        document.legal_hold_set_by = None
        document.legal_hold_set_at = None
        self.audit.log(
            principal,
            "legal_hold_remove",
            "document",
            document.id,
            {"previous_reason": previous_reason},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        return document

