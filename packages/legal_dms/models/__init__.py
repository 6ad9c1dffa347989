"""SQLAlchemy models for the legal DMS schema."""

from .audit import AuditLog
from .base import Base
from .documents import Document, DocumentMeta, RetentionClass
from .firms import Firm, Role, Team, User, team_members
from .matters import Client, Matter, MatterTeam
from .sharing import MatterShare
from .system import DEFAULT_SYSTEM_SETTINGS, SystemSetting, read_system_setting

__all__ = [
    "DEFAULT_SYSTEM_SETTINGS",
    "AuditLog",
    "Base",
    "Client",
    "Document",
    "DocumentMeta",
    "Firm",
    "Matter",
    "MatterShare",
    "MatterTeam",
    "RetentionClass",
    "Role",
    "SystemSetting",
    "Team",
    "User",
    "team_members",
    "read_system_setting",
]
