"""Client, matter and matter team models."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import (
    AccessLevel,
    Base,
    MatterRole,
    MatterStatus,
    TimestampMixin,
    access_level_enum,
    matter_role_enum,
    matter_status_enum,
    utcnow,
)

if TYPE_CHECKING:  # pragma: no cover
    from .firms import User

__all__ = ["Client", "Matter", "MatterTeam"]


class Client(TimestampMixin, Base):
    """Client of a firm; matters optionally belong to one."""

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    external_ref: Mapped[str | None] = mapped_column(String(255))
    contact_email: Mapped[str | None] = mapped_column(String(255))
    contact_phone: Mapped[str | None] = mapped_column(String(50))
    address: Mapped[str | None] = mapped_column(Text)
    client_type: Mapped[str | None] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(
        String(50), default="active", server_default=text("'active'"), nullable=False
    )

    matters: Mapped[list["Matter"]] = relationship(back_populates="client")

    __table_args__ = (
        UniqueConstraint("firm_id", "external_ref", name="uq_clients_firm_external_ref"),
        Index("idx_clients_firm", "firm_id"),
    )


class Matter(TimestampMixin, Base):
    """Legal case/engagement owned by a firm."""

    __tablename__ = "matters"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[MatterStatus] = mapped_column(
        matter_status_enum(), default=MatterStatus.ACTIVE, nullable=False
    )
    # 1 (public) .. 5; compared against the user's clearance level
    security_class: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )

    client: Mapped[Client | None] = relationship(back_populates="matters")
    team: Mapped[list["MatterTeam"]] = relationship(
        back_populates="matter", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_matters_firm", "firm_id"),
        Index("idx_matters_client", "client_id"),
        Index("idx_matters_status", "status"),
    )


class MatterTeam(Base):
    """Membership of a firm user in a matter team."""

    __tablename__ = "matter_teams"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matters.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[MatterRole] = mapped_column(matter_role_enum(), nullable=False)
    access_level: Mapped[AccessLevel] = mapped_column(
        access_level_enum(), default=AccessLevel.READ_ONLY, nullable=False
    )
    added_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    added_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    matter: Mapped[Matter] = relationship(back_populates="team")
    user: Mapped["User"] = relationship(foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("matter_id", "user_id", name="uq_matter_teams_member"),
    )
