"""Firm dashboard statistics."""

from __future__ import annotations

import structlog
from sqlalchemy import func, select

from .. import schemas
from ..models import Client, Document, DocumentMeta, Matter, MatterShare, User
from ..models.base import ensure_utc
from ..policy import Principal
from ..schema.enums import MatterStatus, ShareStatus
from .base import ServiceBase

__all__ = ["DashboardService", "format_storage"]

logger = structlog.get_logger(__name__)

RECENT_PER_KIND = 5
RECENT_ACTIVITY_LIMIT = 10


def format_storage(size_bytes: int) -> str:
    """``"12.3 MB"`` below one gigabyte, ``"1.5 GB"`` above."""

    megabytes = size_bytes / (1024 * 1024)
    if megabytes > 1024:
        return f"{megabytes / 1024:.1f} GB"
    return f"{megabytes:.1f} MB"


class DashboardService(ServiceBase):
    def stats(self, principal: Principal) -> schemas.DashboardStatsResponse:
        self.authorize(principal, "read", "dashboard")
        firm_id = self.require_firm(principal)

        def scalar(stmt) -> int:
            return self.session.execute(stmt).scalar_one() or 0

        live_documents = (Document.firm_id == firm_id, Document.is_deleted.is_(False))
        total_documents = scalar(select(func.count()).select_from(Document).where(*live_documents))
        storage_used = scalar(
            select(func.coalesce(func.sum(Document.size_bytes), 0)).where(*live_documents)
        )
        active_matters = scalar(
            select(func.count())
            .select_from(Matter)
            .where(Matter.firm_id == firm_id, Matter.status == MatterStatus.ACTIVE)
        )
        total_clients = scalar(
            select(func.count()).select_from(Client).where(Client.firm_id == firm_id)
        )
        total_users = scalar(
            select(func.count())
            .select_from(User)
            .where(User.firm_id == firm_id, User.is_active.is_(True))
        )
        pending_shares = scalar(
            select(func.count())
            .select_from(MatterShare)
            .where(
                MatterShare.shared_with_firm_id == firm_id,
                MatterShare.status == ShareStatus.PENDING,
            )
        )

        activity: list[schemas.ActivityItem] = []
        recent_documents = self.session.execute(
            select(Document, DocumentMeta.title)
            .outerjoin(DocumentMeta, DocumentMeta.document_id == Document.id)
            .join(Matter, Document.matter_id == Matter.id)
            .where(*live_documents, Matter.security_class <= principal.clearance_level)
            .order_by(Document.created_at.desc())
            .limit(RECENT_PER_KIND)
        ).all()
        for document, title in recent_documents:
            activity.append(
                schemas.ActivityItem(
                    id=document.id,
                    type="document",
                    title=title or document.original_filename,
                    timestamp=ensure_utc(document.created_at),
                    matter_id=document.matter_id,
                )
            )
        recent_matters = self.session.execute(
            select(Matter)
            .where(Matter.firm_id == firm_id, Matter.security_class <= principal.clearance_level)
            .order_by(Matter.created_at.desc())
            .limit(RECENT_PER_KIND)
        ).scalars()
        for matter in recent_matters:
            activity.append(
                schemas.ActivityItem(
                    id=matter.id,
                    type="matter",
                    title=matter.title,
                    timestamp=ensure_utc(matter.created_at),
                    matter_id=matter.id,
                )
            )
        activity.sort(key=lambda item: item.timestamp, reverse=True)

        return schemas.DashboardStatsResponse(
            total_documents=total_documents,
            active_matters=active_matters,
            total_clients=total_clients,
            total_users=total_users,
            storage_used_bytes=storage_used,
            storage_used=format_storage(storage_used),
            pending_incoming_shares=pending_shares,
            recent_activity=activity[:RECENT_ACTIVITY_LIMIT],
        )
