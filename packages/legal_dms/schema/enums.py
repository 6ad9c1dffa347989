"""Canonical DMS enum definitions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

__all__ = [
    "DmsEnum",
    "EnumDefinition",
    "MatterStatus",
    "MatterRole",
    "AccessLevel",
    "ShareRole",
    "ShareStatus",
    "AuditRiskLevel",
    "AuditOutcome",
    "UploaderType",
    "ENUM_DEFINITIONS",
    "ENUM_DEFINITION_BY_NAME",
    "render_enum_sql",
    "db_enum",
]


class DmsEnum(str, Enum):
    """Base class for DMS enums stored in PostgreSQL."""

    @classmethod
    def values(cls) -> tuple[str, ...]:
        return tuple(item.value for item in cls)


class MatterStatus(DmsEnum):
    ACTIVE = "active"
    PENDING = "pending"
    CLOSED = "closed"
    ARCHIVED = "archived"


class MatterRole(DmsEnum):
    LEAD_LAWYER = "lead_lawyer"
    ASSOCIATE = "associate"
    PARALEGAL = "paralegal"
    LEGAL_ASSISTANT = "legal_assistant"
    OBSERVER = "observer"


class AccessLevel(DmsEnum):
    FULL = "full"
    READ_WRITE = "read_write"
    READ_ONLY = "read_only"
    LIMITED = "limited"


class ShareRole(DmsEnum):
    VIEWER = "viewer"
    EDITOR = "editor"
    COLLABORATOR = "collaborator"
    PARTNER_LEAD = "partner_lead"


class ShareStatus(DmsEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    REVOKED = "revoked"


class AuditRiskLevel(DmsEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditOutcome(DmsEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


class UploaderType(DmsEnum):
    LEGAL_STAFF = "legal_staff"
    CLIENT = "client"


@dataclass(frozen=True)
class EnumDefinition:
    """Metadata describing a PostgreSQL enum type."""

    name: str
    values: tuple[str, ...]
    enum_cls: type[DmsEnum]

    def render_sql(self) -> str:
        values_sql = ",".join(f"'{value}'" for value in self.values)
        return (
            "DO $$ BEGIN\n"
            f"  CREATE TYPE {self.name} AS ENUM ({values_sql});\n"
            "EXCEPTION WHEN duplicate_object THEN NULL; END $$;"
        )


ENUM_DEFINITIONS: tuple[EnumDefinition, ...] = (
    EnumDefinition("matter_status", MatterStatus.values(), MatterStatus),
    EnumDefinition("matter_role", MatterRole.values(), MatterRole),
    EnumDefinition("access_level", AccessLevel.values(), AccessLevel),
    EnumDefinition("share_role", ShareRole.values(), ShareRole),
    EnumDefinition("share_status", ShareStatus.values(), ShareStatus),
    EnumDefinition("audit_risk_level", AuditRiskLevel.values(), AuditRiskLevel),
    EnumDefinition("audit_outcome", AuditOutcome.values(), AuditOutcome),
    EnumDefinition("uploader_type", UploaderType.values(), UploaderType),
)

ENUM_DEFINITION_BY_NAME: Mapping[str, EnumDefinition] = {
    definition.name: definition for definition in ENUM_DEFINITIONS
}

ENUM_DEFINITION_BY_CLASS: Mapping[type[DmsEnum], EnumDefinition] = {
    definition.enum_cls: definition for definition in ENUM_DEFINITIONS
}


def render_enum_sql() -> str:
    """Return ``CREATE TYPE`` statements for all DMS enums."""

    return "\n\n".join(definition.render_sql() for definition in ENUM_DEFINITIONS)


def db_enum(enum_cls: type[DmsEnum]):
    """Return a SQLAlchemy ``Enum`` bound to the canonical type name.

    Values (not member names) are persisted so the column matches the
    PostgreSQL type created by :func:`render_enum_sql`. On SQLite the type
    degrades to a plain ``VARCHAR``.
    """

    from sqlalchemy import Enum as SqlEnum

    definition = ENUM_DEFINITION_BY_CLASS[enum_cls]
    return SqlEnum(
        enum_cls,
        name=definition.name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
