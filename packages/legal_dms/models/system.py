"""Platform-wide key/value settings."""

from __future__ import annotations

import copy
import datetime as dt
import uuid
from typing import Any, Mapping

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base, JSONType, utcnow

__all__ = ["SystemSetting", "DEFAULT_SYSTEM_SETTINGS", "read_system_setting"]

# key -> (default value, description); 0003_system_settings.sql inserts the same rows
DEFAULT_SYSTEM_SETTINGS: Mapping[str, tuple[Any, str]] = {
    "platform_name": (
        "Legal Document Management System",
        "Name shown in exports and watermarks",
    ),
    "default_retention_years": (7, "Retention period for documents without a retention class"),
    "max_file_size_mb": (100, "Largest accepted upload in megabytes"),
    "enable_ocr": (True, "Extract text from uploaded documents"),
    "enable_legal_holds": (True, "Allow legal holds to be placed on documents"),
    "enable_cross_firm_sharing": (True, "Allow matters to be shared with other firms"),
    "backup_config": (
        {"frequency": "daily", "retention_days": 30, "enabled": True},
        "Backup schedule",
    ),
    "smtp_config": (
        {"host": "smtp.example.com", "port": 587, "secure": False, "enabled": False},
        "Outgoing mail server",
    ),
    "watermark_config": (
        {"enabled": True, "text": "CONFIDENTIAL - {firm_name}", "opacity": 0.3},
        "Watermark applied to shared downloads",
    ),
    "security_policy": (
        {
            "session_timeout_minutes": 60,
            "max_login_attempts": 5,
            "password_expiry_days": 90,
            "require_mfa_for_admins": True,
        },
        "Session and login policy",
    ),
}


class SystemSetting(Base):
    """One platform setting; ``value`` holds any JSON value."""

    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    description: Mapped[str | None] = mapped_column(Text)
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )


def read_system_setting(session: Session, key: str) -> Any:
    """Stored value of *key*, or its default when no row exists."""

    row = session.get(SystemSetting, key)
    if row is not None:
        return row.value
    return copy.deepcopy(DEFAULT_SYSTEM_SETTINGS[key][0])
