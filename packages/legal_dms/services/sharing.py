"""Cross-firm matter sharing.

A share grants another firm access to one matter. It starts ``pending`` and
moves through a small state machine::

    pending  -> accepted | declined      (receiving firm)
    pending  -> revoked                  (sharing firm)
    accepted -> revoked                  (sharing firm)
    pending | accepted -> expired        (system, once expires_at passes)

``declined``, ``expired`` and ``revoked`` are terminal.
"""

from __future__ import annotations

import datetime as dt
import ipaddress
import uuid
from pathlib import PurePath
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.orm import Session, selectinload

from .. import schemas
from ..clearance import can_access
from ..models import AuditLog, Document, Firm, Matter, MatterShare
from ..models.base import ensure_utc, utcnow
from ..policy import Principal
from ..schema.enums import AuditRiskLevel, ShareRole, ShareStatus
from ..settings import DmsSettings
from .audit import AuditService
from .base import ConflictError, ServiceBase
from .documents import ObjectStore

__all__ = [
    "ROLE_DEFAULT_PERMISSIONS",
    "ALLOWED_TRANSITIONS",
    "MatterSharingService",
    "SharedDownload",
    "check_restrictions",
    "check_transition",
    "default_permissions",
]

logger = structlog.get_logger(__name__)

# can_download, can_upload, can_comment, can_view_audit, watermark_required
ROLE_DEFAULT_PERMISSIONS: Mapping[ShareRole, Mapping[str, bool]] = {
    ShareRole.VIEWER: {
        "can_download": False,
        "can_upload": False,
        "can_comment": True,
        "can_view_audit": False,
        "watermark_required": True,
    },
    ShareRole.EDITOR: {
        "can_download": True,
        "can_upload": True,
        "can_comment": True,
        "can_view_audit": False,
        "watermark_required": False,
    },
    ShareRole.COLLABORATOR: {
        "can_download": True,
        "can_upload": True,
        "can_comment": True,
        "can_view_audit": True,
        "watermark_required": False,
    },
    ShareRole.PARTNER_LEAD: {
        "can_download": True,
        "can_upload": True,
        "can_comment": True,
        "can_view_audit": True,
        "watermark_required": False,
    },
}

ALLOWED_TRANSITIONS: Mapping[ShareStatus, frozenset[ShareStatus]] = {
    ShareStatus.PENDING: frozenset(
        {ShareStatus.ACCEPTED, ShareStatus.DECLINED, ShareStatus.REVOKED, ShareStatus.EXPIRED}
    ),
    ShareStatus.ACCEPTED: frozenset({ShareStatus.REVOKED, ShareStatus.EXPIRED}),
}

# statuses each side may request explicitly
_RECIPIENT_STATUSES = frozenset({ShareStatus.ACCEPTED, ShareStatus.DECLINED})
_SHARER_STATUSES = frozenset({ShareStatus.REVOKED})


def default_permissions(
    role: ShareRole, overrides: Optional[Mapping[str, Any]] = None
) -> dict[str, bool]:
    """Role defaults with the non-null *overrides* applied on top."""

    permissions = dict(ROLE_DEFAULT_PERMISSIONS[role])
    for key, value in (overrides or {}).items():
        if value is not None:
            permissions[key] = bool(value)
    return permissions


def check_transition(current: ShareStatus, target: ShareStatus) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ValueError(
            f"Invalid status transition from {current.value} to {target.value}"
        )


def _document_type_allowed(document: Document, allowed: list[str]) -> bool:
    extension = PurePath(document.original_filename).suffix.lower().lstrip(".")
    mime_suffix = (document.mime_type or "").rsplit("/", 1)[-1].lower()
    wanted = {entry.lower().lstrip(".") for entry in allowed}
    return extension in wanted or mime_suffix in wanted


def _ip_allowed(ip_address: Optional[str], whitelist: list[str]) -> bool:
    if not ip_address:
        return False
    try:
        address = ipaddress.ip_address(ip_address)
    except ValueError:
        return False
    for entry in whitelist:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            logger.warning("invalid_ip_whitelist_entry", entry=entry)
    return False


def _within_time_window(window: Mapping[str, str], now: dt.datetime) -> bool:
    zone = ZoneInfo(window.get("timezone") or "UTC")
    local = now.astimezone(zone).time()
    start = dt.time.fromisoformat(window["start_time"])
    end = dt.time.fromisoformat(window["end_time"])
    if start <= end:
        return start <= local <= end
    # overnight window, e.g. 22:00-06:00
    return local >= start or local <= end


def check_restrictions(
    share: MatterShare,
    document: Document,
    *,
    ip_address: Optional[str] = None,
    now: Optional[dt.datetime] = None,
    counting_download: bool = False,
) -> None:
    """Raise :class:`PermissionError` when *share* restrictions forbid access."""

    restrictions = share.restrictions or {}
    now = now or utcnow()

    allowed_types = restrictions.get("allowed_document_types")
    if allowed_types and not _document_type_allowed(document, allowed_types):
        raise PermissionError("Document type is not allowed by this share")

    whitelist = restrictions.get("ip_whitelist")
    if whitelist and not _ip_allowed(ip_address, whitelist):
        raise PermissionError("Access from this IP address is not allowed by this share")

    window = restrictions.get("time_restrictions")
    if window and not _within_time_window(window, now):
        raise PermissionError("Access is not allowed at this time by this share")

    max_downloads = restrictions.get("max_download_count")
    if counting_download and max_downloads is not None and share.download_count >= max_downloads:
        raise PermissionError("Download limit reached for this share")


def _validate_restrictions(restrictions: Mapping[str, Any]) -> None:
    window = restrictions.get("time_restrictions")
    if window:
        try:
            ZoneInfo(window.get("timezone") or "UTC")
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {window.get('timezone')}") from exc
    for entry in restrictions.get("ip_whitelist") or []:
        try:
            ipaddress.ip_network(entry, strict=False)
        except ValueError as exc:
            raise ValueError(f"Invalid IP whitelist entry: {entry}") from exc


class SharedDownload:
    """Content of a shared document plus the share's watermark flag."""

    __slots__ = ("share", "document", "content", "watermark_required")

    def __init__(self, share: MatterShare, document: Document, content: bytes):
        self.share = share
        self.document = document
        self.content = content
        self.watermark_required = bool((share.permissions or {}).get("watermark_required"))


class MatterSharingService(ServiceBase):
    """사건 공유 관리."""

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
    # 조회 헬퍼
    # ========================================================================

    def _load(self, share_id: uuid.UUID) -> MatterShare:
        share = self.session.get(
            MatterShare,
            share_id,
            options=[
                selectinload(MatterShare.matter),
                selectinload(MatterShare.shared_by_firm),
                selectinload(MatterShare.shared_with_firm),
            ],
        )
        if share is None:
            raise NoResultFound("Matter share not found")
        return share

    def _get_share(self, share_id: uuid.UUID, principal: Principal) -> MatterShare:
        """Share visible to either party."""

        share = self._load(share_id)
        if principal.is_super_admin:
            return share
        if principal.firm_id not in (share.shared_by_firm_id, share.shared_with_firm_id):
            raise PermissionError("Access denied to this matter share")
        return share

    @staticmethod
    def _is_sharer(share: MatterShare, principal: Principal) -> bool:
        return principal.is_super_admin or principal.firm_id == share.shared_by_firm_id

    @staticmethod
    def _is_recipient(share: MatterShare, principal: Principal) -> bool:
        return principal.is_super_admin or principal.firm_id == share.shared_with_firm_id

    def _base_query(self):
        return select(MatterShare).options(
            selectinload(MatterShare.matter),
            selectinload(MatterShare.shared_by_firm),
            selectinload(MatterShare.shared_with_firm),
        )

    @staticmethod
    def to_response(share: MatterShare, now: Optional[dt.datetime] = None) -> schemas.MatterShareResponse:
        return schemas.MatterShareResponse(
            id=share.id,
            matter_id=share.matter_id,
            matter_title=share.matter.title if share.matter else None,
            shared_by_firm_id=share.shared_by_firm_id,
            shared_by_firm_name=share.shared_by_firm.name if share.shared_by_firm else None,
            shared_with_firm_id=share.shared_with_firm_id,
            shared_with_firm_name=share.shared_with_firm.name if share.shared_with_firm else None,
            shared_by_user_id=share.shared_by_user_id,
            role=share.role,
            status=share.status,
            accepted_at=share.accepted_at,
            accepted_by_user_id=share.accepted_by_user_id,
            invitation_message=share.invitation_message,
            permissions=share.permissions or {},
            restrictions=share.restrictions or {},
            download_count=share.download_count,
            expires_at=share.expires_at,
            is_active=share.is_active(now),
            created_at=share.created_at,
            updated_at=share.updated_at,
        )

    # ========================================================================
    # 생성 / 조회
    # ========================================================================

    def create_share(
        self, request: schemas.MatterShareCreateRequest, principal: Principal
    ) -> MatterShare:
        self.authorize(principal, "write", "share")
        if not self.system_setting("enable_cross_firm_sharing"):
            raise PermissionError("Cross-firm sharing is disabled in system settings")
        matter = self.get_or_404(Matter, request.matter_id, "Matter")
        if principal.is_super_admin:
            sharer_firm_id = matter.firm_id
        else:
            sharer_firm_id = self.require_firm(principal)
            if matter.firm_id != sharer_firm_id:
                raise PermissionError("Matter does not belong to your firm")

        if request.shared_with_firm_id == sharer_firm_id:
            raise ValueError("Cannot share a matter with your own firm")
        target = self.session.get(Firm, request.shared_with_firm_id)
        if target is None or target.deleted_at is not None:
            raise NoResultFound("Target firm not found")

        expires_at = ensure_utc(request.expires_at)
        if expires_at is not None and expires_at <= utcnow():
            raise ValueError("Expiration date must be in the future")

        existing = self.session.execute(
            select(MatterShare.id).where(
                MatterShare.matter_id == matter.id,
                MatterShare.shared_with_firm_id == target.id,
            )
        ).first()
        if existing:
            raise ConflictError("Matter is already shared with this firm")

        restrictions = (
            request.restrictions.model_dump(exclude_none=True) if request.restrictions else {}
        )
        _validate_restrictions(restrictions)
        share = MatterShare(
            matter_id=matter.id,
            shared_by_firm_id=sharer_firm_id,
            shared_with_firm_id=target.id,
            shared_by_user_id=principal.id,
            role=request.role,
            status=ShareStatus.PENDING,
            invitation_message=request.invitation_message,
            permissions=default_permissions(
                request.role,
                request.permissions.model_dump() if request.permissions else None,
            ),
            restrictions=restrictions,
            expires_at=expires_at,
        )
        self.session.add(share)
        self.session.flush()
        self.audit.log(
            principal,
            "matter_share_create",
            "matter_share",
            share.id,
            {
                "matter_id": matter.id,
                "shared_with_firm_id": target.id,
                "role": request.role.value,
            },
            risk_level=AuditRiskLevel.MEDIUM,
            firm_id=sharer_firm_id,
        )
        self.session.commit()
        logger.info(
            "matter_shared",
            share_id=str(share.id),
            matter_id=str(matter.id),
            shared_with_firm_id=str(target.id),
        )
        return self._load(share.id)

    def get_share(self, share_id: uuid.UUID, principal: Principal) -> MatterShare:
        self.authorize(principal, "read", "share")
        return self._get_share(share_id, principal)

    def list_for_matter(self, matter_id: uuid.UUID, principal: Principal) -> list[MatterShare]:
        self.authorize(principal, "read", "share")
        matter = self.get_or_404(Matter, matter_id, "Matter")
        self.check_firm_access(principal, matter.firm_id)
        stmt = (
            self._base_query()
            .where(MatterShare.matter_id == matter.id)
            .order_by(MatterShare.created_at.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def share_history(self, matter_id: uuid.UUID, principal: Principal) -> list[AuditLog]:
        """Audit trail of every share of a matter, oldest first.

        Only the firm that owns the matter sees it.
        """

        self.authorize(principal, "read", "share")
        matter = self.get_or_404(Matter, matter_id, "Matter")
        self.check_firm_access(principal, matter.firm_id)
        share_ids = [
            str(share_id)
            for share_id in self.session.execute(
                select(MatterShare.id).where(MatterShare.matter_id == matter.id)
            ).scalars()
        ]
        if not share_ids:
            return []
        stmt = (
            select(AuditLog)
            .where(
                AuditLog.resource_type == "matter_share",
                AuditLog.resource_id.in_(share_ids),
            )
            .order_by(AuditLog.timestamp, AuditLog.id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_incoming(
        self, principal: Principal, status: Optional[ShareStatus] = None
    ) -> list[MatterShare]:
        self.authorize(principal, "read", "share")
        stmt = self._base_query().where(
            MatterShare.shared_with_firm_id == self.require_firm(principal)
        )
        if status:
            stmt = stmt.where(MatterShare.status == status)
        return list(self.session.execute(stmt.order_by(MatterShare.created_at.desc())).scalars())

    def list_outgoing(
        self, principal: Principal, status: Optional[ShareStatus] = None
    ) -> list[MatterShare]:
        self.authorize(principal, "read", "share")
        stmt = self._base_query().where(
            MatterShare.shared_by_firm_id == self.require_firm(principal)
        )
        if status:
            stmt = stmt.where(MatterShare.status == status)
        return list(self.session.execute(stmt.order_by(MatterShare.created_at.desc())).scalars())

    def search_firms(self, query: str, principal: Principal, limit: int = 20) -> list[Firm]:
        """Partner firms whose name contains *query*, excluding the caller's."""

        self.authorize(principal, "read", "share")
        stmt = select(Firm).where(Firm.deleted_at.is_(None))
        if query:
            stmt = stmt.where(Firm.name.ilike(f"%{query}%"))
        if principal.firm_id is not None:
            stmt = stmt.where(Firm.id != principal.firm_id)
        stmt = stmt.order_by(Firm.name).limit(min(max(limit, 1), 100))
        return list(self.session.execute(stmt).scalars())

    # ========================================================================
    # 상태 전이
    # ========================================================================

    def _transition(
        self, share: MatterShare, target: ShareStatus, principal: Optional[Principal]
    ) -> None:
        now = utcnow()
        check_transition(share.status, target)
        if target == ShareStatus.ACCEPTED and share.is_expired(now):
            share.status = ShareStatus.EXPIRED
            self.audit.log(
                principal,
                "matter_share_expire",
                "matter_share",
                share.id,
                {"reason": "accepted_after_expiry"},
                firm_id=share.shared_by_firm_id,
            )
            self.session.commit()
            raise ValueError("Matter share has expired")

        previous = share.status
        share.status = target
        if target == ShareStatus.ACCEPTED:
            share.accepted_at = now
            share.accepted_by_user_id = principal.id if principal else None
        elif target in (ShareStatus.DECLINED, ShareStatus.REVOKED):
            share.accepted_at = None
            share.accepted_by_user_id = None
        self.audit.log(
            principal,
            f"matter_share_{target.value}",
            "matter_share",
            share.id,
            {"from": previous.value, "to": target.value, "matter_id": share.matter_id},
            risk_level=AuditRiskLevel.MEDIUM,
        )

    def accept_share(self, share_id: uuid.UUID, principal: Principal) -> MatterShare:
        self.authorize(principal, "write", "share")
        share = self._get_share(share_id, principal)
        if not self._is_recipient(share, principal):
            raise PermissionError("Only the receiving firm can accept a share")
        self._transition(share, ShareStatus.ACCEPTED, principal)
        self.session.commit()
        return share

    def decline_share(self, share_id: uuid.UUID, principal: Principal) -> MatterShare:
        self.authorize(principal, "write", "share")
        share = self._get_share(share_id, principal)
        if not self._is_recipient(share, principal):
            raise PermissionError("Only the receiving firm can decline a share")
        self._transition(share, ShareStatus.DECLINED, principal)
        self.session.commit()
        return share

    def revoke_share(self, share_id: uuid.UUID, principal: Principal) -> MatterShare:
        self.authorize(principal, "write", "share")
        share = self._get_share(share_id, principal)
        if not self._is_sharer(share, principal):
            raise PermissionError("Only the sharing firm can revoke a share")
        self._transition(share, ShareStatus.REVOKED, principal)
        self.session.commit()
        return share

    def update_share(
        self,
        share_id: uuid.UUID,
        request: schemas.MatterShareUpdateRequest,
        principal: Principal,
    ) -> MatterShare:
        self.authorize(principal, "write", "share")
        share = self._get_share(share_id, principal)
        changes = request.model_dump(exclude_unset=True)
        sharer_fields = {"role", "permissions", "restrictions", "expires_at", "invitation_message"}
        if sharer_fields & changes.keys() and not self._is_sharer(share, principal):
            raise PermissionError("Only the sharing firm can change share terms")

        if request.status is not None and request.status != share.status:
            allowed = set()
            if self._is_recipient(share, principal):
                allowed |= _RECIPIENT_STATUSES
            if self._is_sharer(share, principal):
                allowed |= _SHARER_STATUSES
            if request.status not in allowed:
                raise PermissionError(
                    f"Cannot set share status to {request.status.value}"
                )
            self._transition(share, request.status, principal)

        if request.role is not None and request.role != share.role:
            share.role = request.role
            # role change resets to the new defaults, keeping explicit overrides below
            share.permissions = default_permissions(request.role)
        if request.permissions is not None:
            share.permissions = {
                **(share.permissions or default_permissions(share.role)),
                **request.permissions.model_dump(exclude_none=True),
            }
        if request.restrictions is not None:
            restrictions = {
                **(share.restrictions or {}),
                **request.restrictions.model_dump(exclude_none=True),
            }
            _validate_restrictions(restrictions)
            share.restrictions = restrictions
        if "expires_at" in changes:
            expires_at = ensure_utc(request.expires_at)
            if expires_at is not None and expires_at <= utcnow():
                raise ValueError("Expiration date must be in the future")
            share.expires_at = expires_at
        if "invitation_message" in changes:
            share.invitation_message = request.invitation_message

        self.audit.log(
            principal,
            "matter_share_update",
            "matter_share",
            share.id,
            {"fields": sorted(changes)},
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        return share

    def delete_share(self, share_id: uuid.UUID, principal: Principal) -> None:
        self.authorize(principal, "write", "share")
        share = self._get_share(share_id, principal)
        if not self._is_sharer(share, principal):
            raise PermissionError("Only the sharing firm can delete a share")
        self.session.delete(share)
        self.audit.log(
            principal,
            "matter_share_delete",
            "matter_share",
            share_id,
            {"matter_id": share.matter_id, "shared_with_firm_id": share.shared_with_firm_id},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()

    def expire_old_shares(
        self, now: Optional[dt.datetime] = None, principal: Optional[Principal] = None
    ) -> int:
        """Mark pending/accepted shares past ``expires_at`` as expired.

        Called without a principal by the scheduled CLI job.
        """

        if principal is not None:
            self.authorize(principal, "expire", "share")
        now = now or utcnow()
        stmt = select(MatterShare).where(
            MatterShare.status.in_([ShareStatus.PENDING, ShareStatus.ACCEPTED]),
            MatterShare.expires_at.is_not(None),
            MatterShare.expires_at < now,
        )
        expired = 0
        for share in self.session.execute(stmt).scalars():
            share.status = ShareStatus.EXPIRED
            self.audit.log(
                None,
                "matter_share_expire",
                "matter_share",
                share.id,
                {"expires_at": ensure_utc(share.expires_at).isoformat()},
                firm_id=share.shared_by_firm_id,
            )
            expired += 1
        self.session.commit()
        logger.info("matter_shares_expired", count=expired)
        return expired

    def stats(self, principal: Principal) -> schemas.ShareStatsResponse:
        self.authorize(principal, "read", "share")
        firm_id = self.require_firm(principal)

        def _by_status(column) -> dict[str, int]:
            rows = self.session.execute(
                select(MatterShare.status, func.count())
                .where(column == firm_id)
                .group_by(MatterShare.status)
            ).all()
            counts = {status.value: 0 for status in ShareStatus}
            for status, count in rows:
                counts[ShareStatus(status).value] = count
            return counts

        now = utcnow()
        active_out = active_in = 0
        stmt = select(MatterShare).where(
            MatterShare.status == ShareStatus.ACCEPTED,
            or_(
                MatterShare.shared_by_firm_id == firm_id,
                MatterShare.shared_with_firm_id == firm_id,
            ),
        )
        for share in self.session.execute(stmt).scalars():
            if not share.is_active(now):
                continue
            if share.shared_by_firm_id == firm_id:
                active_out += 1
            else:
                active_in += 1
        return schemas.ShareStatsResponse(
            outgoing=_by_status(MatterShare.shared_by_firm_id),
            incoming=_by_status(MatterShare.shared_with_firm_id),
            active_outgoing=active_out,
            active_incoming=active_in,
        )

    # ========================================================================
    # 공유 문서 접근 (수신 로펌)
    # ========================================================================

    def _active_incoming(self, share_id: uuid.UUID, principal: Principal) -> MatterShare:
        share = self._get_share(share_id, principal)
        if principal.firm_id != share.shared_with_firm_id and not principal.is_super_admin:
            raise PermissionError("Only the receiving firm can access shared documents")
        if not share.is_active():
            raise PermissionError("Matter share is not active")
        return share

    def list_shared_documents(
        self, share_id: uuid.UUID, principal: Principal
    ) -> tuple[MatterShare, list[Document]]:
        self.authorize(principal, "read", "document")
        share = self._active_incoming(share_id, principal)
        stmt = (
            select(Document)
            .options(selectinload(Document.meta), selectinload(Document.matter))
            .where(Document.matter_id == share.matter_id, Document.is_deleted.is_(False))
            .order_by(Document.created_at.desc())
        )
        allowed_types = (share.restrictions or {}).get("allowed_document_types")
        documents = [
            document
            for document in self.session.execute(stmt).scalars()
            if can_access(principal.clearance_level, document.effective_security_class)
            and (not allowed_types or _document_type_allowed(document, allowed_types))
        ]
        return share, documents

    def download_shared_document(
        self, share_id: uuid.UUID, document_id: uuid.UUID, principal: Principal
    ) -> SharedDownload:
        self.authorize(principal, "read", "document")
        share = self._active_incoming(share_id, principal)
        if not share.can_perform("can_download"):
            raise PermissionError("This share does not allow downloads")
        document = self.session.get(Document, document_id)
        if document is None or document.is_deleted or document.matter_id != share.matter_id:
            raise NoResultFound("Document not found")
        if not can_access(principal.clearance_level, document.effective_security_class):
            raise PermissionError("Insufficient clearance level for this document")
        check_restrictions(
            share,
            document,
            ip_address=principal.ip_address,
            counting_download=True,
        )
        if self.storage is None:
            raise RuntimeError("Object storage is not configured")
        content = self.storage.download_file(document.object_key)
        share.download_count = (share.download_count or 0) + 1
        self.audit.log(
            principal,
            "shared_document_download",
            "matter_share",
            share.id,
            {"document_id": document.id, "download_count": share.download_count},
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        return SharedDownload(share, document, content)
