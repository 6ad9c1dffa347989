"""Role-based authorization for DMS operations.

Each role carries a set of permission names (seeded into ``roles``). An
operation is described by an ``(action, resource)`` pair; it is allowed when
the principal holds at least one permission granted for that pair.
``super_admin`` bypasses every check.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .clearance import DEFAULT_CLEARANCE

__all__ = [
    "Principal",
    "ROLE_PERMISSIONS",
    "ROLE_DESCRIPTIONS",
    "ROLE_HIERARCHY",
    "ACTION_GRANTS",
    "permissions_for_roles",
    "is_allowed",
    "authorize",
]

ROLE_PERMISSIONS: Mapping[str, tuple[str, ...]] = {
    "super_admin": ("admin", "user_management", "firm_management", "system_config"),
    "firm_admin": (
        "admin",
        "user_management",
        "client_management",
        "matter_management",
        "document_management",
        "retention",
        "legal_hold",
    ),
    "legal_manager": (
        "document_management",
        "matter_management",
        "client_management",
        "legal_hold",
        "retention",
    ),
    "legal_professional": ("document", "matter", "client", "document_upload", "legal_review"),
    "paralegal": ("document", "matter", "client", "document_upload"),
    "support_staff": ("document", "matter", "client"),
    "client_user": ("client_portal", "document_view"),
}

ROLE_DESCRIPTIONS: Mapping[str, str] = {
    "super_admin": "Platform administrator across all firms",
    "firm_admin": "Administrator of a single firm",
    "legal_manager": "Manages matters, documents, retention and legal holds",
    "legal_professional": "Lawyer working on matters and documents",
    "paralegal": "Supports lawyers with documents and matters",
    "support_staff": "Administrative support with read access",
    "client_user": "External client using the portal",
}

# 역할 계층: super_admin > firm_admin > legal_manager > ... > client_user
ROLE_HIERARCHY: Mapping[str, int] = {
    "super_admin": 100,
    "firm_admin": 80,
    "legal_manager": 60,
    "legal_professional": 50,
    "paralegal": 40,
    "support_staff": 30,
    "client_user": 10,
}

_STAFF_READ = frozenset({"admin", "document", "document_management", "matter", "matter_management"})

ACTION_GRANTS: Mapping[tuple[str, str], frozenset[str]] = {
    ("read", "firm"): frozenset({"firm_management"}),
    ("write", "firm"): frozenset({"firm_management"}),
    ("read", "user"): frozenset({"admin", "user_management"}),
    ("write", "user"): frozenset({"user_management"}),
    ("read", "role"): frozenset({"admin", "user_management"}),
    ("read", "team"): frozenset({"admin", "user_management"}),
    ("write", "team"): frozenset({"admin", "user_management"}),
    ("read", "audit"): frozenset({"admin"}),
    ("read", "system_stats"): frozenset({"admin"}),
    ("read", "system_settings"): frozenset({"admin"}),
    ("write", "system_settings"): frozenset({"system_config"}),
    ("read", "retention"): frozenset({"retention", "admin"}),
    ("write", "retention"): frozenset({"retention"}),
    ("read", "client"): frozenset({"client", "client_management", "admin"}),
    ("write", "client"): frozenset({"client", "client_management", "admin"}),
    ("delete", "client"): frozenset({"client_management", "admin"}),
    ("read", "matter"): frozenset({"matter", "matter_management", "admin"}),
    ("write", "matter"): frozenset({"matter", "matter_management", "admin"}),
    ("delete", "matter"): frozenset({"matter_management", "admin"}),
    ("read", "document"): frozenset({"document", "document_management", "admin"}),
    ("write", "document"): frozenset({"document_upload", "document_management", "admin"}),
    ("delete", "document"): frozenset({"document_management", "admin"}),
    ("write", "legal_hold"): frozenset({"legal_hold"}),
    ("read", "share"): frozenset({"matter", "matter_management", "admin"}),
    ("write", "share"): frozenset({"matter_management", "legal_review", "admin"}),
    ("expire", "share"): frozenset({"system_config"}),
    ("read", "dashboard"): _STAFF_READ,
    ("read", "client_portal"): frozenset({"client_portal"}),
    ("write", "client_portal"): frozenset({"client_portal"}),
}


@dataclass(slots=True)
class Principal:
    """Authenticated user a request acts for."""

    id: uuid.UUID
    email: str
    display_name: str
    firm_id: uuid.UUID | None = None
    roles: tuple[str, ...] = ()
    permissions: frozenset[str] = frozenset()
    clearance_level: int = DEFAULT_CLEARANCE
    client_ids: tuple[uuid.UUID, ...] = ()
    ip_address: str | None = None
    user_agent: str | None = None
    attributes: dict = field(default_factory=dict)

    @property
    def is_super_admin(self) -> bool:
        return "super_admin" in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def permissions_for_roles(
    roles: Iterable[str], overrides: Mapping[str, Iterable[str]] | None = None
) -> frozenset[str]:
    """Union of the permissions of *roles*.

    ``overrides`` maps role names to permission lists loaded from the
    ``roles`` table and takes precedence over the built-in defaults.
    """

    overrides = overrides or {}
    collected: set[str] = set()
    for role in roles:
        if role in overrides:
            collected.update(overrides[role])
        else:
            collected.update(ROLE_PERMISSIONS.get(role, ()))
    return frozenset(collected)


def is_allowed(principal: Principal, action: str, resource: str) -> bool:
    if principal.is_super_admin:
        return True
    granted_by = ACTION_GRANTS.get((action, resource))
    if not granted_by:
        return False
    return not granted_by.isdisjoint(principal.permissions)


def authorize(principal: Principal, action: str, resource: str) -> None:
    """Raise :class:`PermissionError` unless *principal* may act on *resource*."""

    if not is_allowed(principal, action, resource):
        roles = ", ".join(principal.roles) or "none"
        raise PermissionError(
            f"Access denied: user with roles [{roles}] cannot {action} {resource}"
        )
