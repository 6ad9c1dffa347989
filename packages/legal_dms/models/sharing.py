"""Cross-firm matter sharing model."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import (
    Base,
    ShareRole,
    ShareStatus,
    TimestampMixin,
    ensure_utc,
    share_role_enum,
    share_status_enum,
    utcnow,
)
from .firms import Firm
from .matters import Matter

__all__ = ["MatterShare"]


class MatterShare(TimestampMixin, Base):
    """Grant of access to a matter for another firm."""

    __tablename__ = "matter_shares"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matters.id", ondelete="CASCADE"), nullable=False
    )
    shared_by_firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    shared_with_firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    shared_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    role: Mapped[ShareRole] = mapped_column(
        share_role_enum(), default=ShareRole.VIEWER, nullable=False
    )
    status: Mapped[ShareStatus] = mapped_column(
        share_status_enum(), default=ShareStatus.PENDING, nullable=False
    )
    accepted_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    accepted_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    invitation_message: Mapped[str | None] = mapped_column(Text)
    permissions: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)
    restrictions: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)
    download_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )
    expires_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))

    matter: Mapped[Matter] = relationship()
    shared_by_firm: Mapped[Firm] = relationship(foreign_keys=[shared_by_firm_id])
    shared_with_firm: Mapped[Firm] = relationship(foreign_keys=[shared_with_firm_id])

    __table_args__ = (
        UniqueConstraint(
            "matter_id", "shared_with_firm_id", name="uq_matter_shares_matter_firm"
        ),
        Index("idx_matter_shares_shared_by", "shared_by_firm_id"),
        Index("idx_matter_shares_shared_with", "shared_with_firm_id"),
        Index("idx_matter_shares_status", "status"),
    )

    def is_expired(self, now: dt.datetime | None = None) -> bool:
        expires_at = ensure_utc(self.expires_at)
        if expires_at is None:
            return False
        return expires_at <= (now or utcnow())

    def is_pending(self) -> bool:
        return self.status == ShareStatus.PENDING

    def is_active(self, now: dt.datetime | None = None) -> bool:
        return self.status == ShareStatus.ACCEPTED and not self.is_expired(now)

    def can_perform(self, action: str, now: dt.datetime | None = None) -> bool:
        """Return ``True`` when the share is active and grants *action*."""

        if not self.is_active(now):
            return False
        return bool((self.permissions or {}).get(action, False))
