"""Document, metadata and retention models."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UploaderType, uploader_type_enum
from .matters import Matter

__all__ = ["RetentionClass", "Document", "DocumentMeta"]


class RetentionClass(TimestampMixin, Base):
    __tablename__ = "retention_classes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    retention_years: Mapped[int] = mapped_column(Integer, nullable=False)
    legal_hold_override: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("firm_id", "name", name="uq_retention_classes_firm_name"),
    )


class Document(TimestampMixin, Base):
    """Stored document version; content lives in object storage."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    matter_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matters.id", ondelete="CASCADE"), nullable=False
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("firms.id", ondelete="CASCADE"), nullable=False
    )
    client_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("clients.id", ondelete="SET NULL")
    )
    object_key: Mapped[str] = mapped_column(Text, nullable=False)
    content_sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(500), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    parent_document_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("documents.id", ondelete="SET NULL")
    )
    retention_class_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("retention_classes.id", ondelete="SET NULL")
    )
    # optional per-document clearance (1..10) on top of the matter's class
    security_class: Mapped[int | None] = mapped_column(Integer)
    legal_hold: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    legal_hold_reason: Mapped[str | None] = mapped_column(Text)
    legal_hold_set_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    legal_hold_set_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    uploaded_by_type: Mapped[UploaderType] = mapped_column(
        uploader_type_enum(), default=UploaderType.LEGAL_STAFF, nullable=False
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    deleted_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))

    matter: Mapped[Matter] = relationship()
    retention_class: Mapped[RetentionClass | None] = relationship()
    meta: Mapped["DocumentMeta | None"] = relationship(
        back_populates="document", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_documents_matter", "matter_id"),
        Index("idx_documents_firm", "firm_id"),
        Index("idx_documents_sha256", "content_sha256"),
    )

    @property
    def effective_security_class(self) -> int:
        """Highest of the matter class and the document's own class."""

        matter_class = self.matter.security_class if self.matter is not None else 1
        return max(matter_class, self.security_class or 1)


class DocumentMeta(Base):
    """Descriptive and extracted metadata, one row per document."""

    __tablename__ = "document_meta"

    document_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True
    )
    title: Mapped[str | None] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[list[str]] = mapped_column(default=list, nullable=False)
    parties: Mapped[list[str]] = mapped_column(default=list, nullable=False)
    jurisdiction: Mapped[str | None] = mapped_column(String(100))
    document_type: Mapped[str | None] = mapped_column(String(100))
    document_date: Mapped[dt.date | None] = mapped_column(Date)
    effective_date: Mapped[dt.date | None] = mapped_column(Date)
    expiry_date: Mapped[dt.date | None] = mapped_column(Date)
    confidential: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    privileged: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    work_product: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    custom_fields: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)
    extracted_text: Mapped[str | None] = mapped_column(Text)
    pages: Mapped[int | None] = mapped_column(Integer)

    document: Mapped[Document] = relationship(back_populates="meta")
