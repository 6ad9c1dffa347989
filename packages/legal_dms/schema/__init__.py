"""Schema metadata shared by models and migrations."""

from .enums import (
    ENUM_DEFINITIONS,
    ENUM_DEFINITION_BY_NAME,
    AccessLevel,
    AuditOutcome,
    AuditRiskLevel,
    EnumDefinition,
    MatterRole,
    MatterStatus,
    ShareRole,
    ShareStatus,
    UploaderType,
    db_enum,
    render_enum_sql,
)

__all__ = [
    "ENUM_DEFINITIONS",
    "ENUM_DEFINITION_BY_NAME",
    "AccessLevel",
    "AuditOutcome",
    "AuditRiskLevel",
    "EnumDefinition",
    "MatterRole",
    "MatterStatus",
    "ShareRole",
    "ShareStatus",
    "UploaderType",
    "db_enum",
    "render_enum_sql",
]
