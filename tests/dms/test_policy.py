import uuid

import pytest

from packages.legal_dms.policy import (
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    Principal,
    authorize,
    is_allowed,
    permissions_for_roles,
)


def _principal(*roles: str, overrides=None) -> Principal:
    return Principal(
        id=uuid.uuid4(),
        email="someone@firm.test",
        display_name="Someone",
        firm_id=uuid.uuid4(),
        roles=roles,
        permissions=permissions_for_roles(roles, overrides),
    )


def test_every_role_has_a_hierarchy_level():
    assert set(ROLE_PERMISSIONS) == set(ROLE_HIERARCHY)
    assert ROLE_HIERARCHY["super_admin"] > ROLE_HIERARCHY["firm_admin"] > ROLE_HIERARCHY["client_user"]


def test_permissions_union_and_overrides():
    perms = permissions_for_roles(["paralegal", "client_user"])
    assert {"document_upload", "client_portal"} <= perms

    overridden = permissions_for_roles(["paralegal"], {"paralegal": ["document"]})
    assert overridden == frozenset({"document"})


def test_authorize_raises_permission_error():
    support = _principal("support_staff")
    authorize(support, "read", "document")
    with pytest.raises(PermissionError):
        authorize(support, "write", "document")


def test_super_admin_is_allowed_everything():
    root = _principal("super_admin")
    assert root.is_super_admin
    assert is_allowed(root, "delete", "document")
    assert is_allowed(root, "expire", "share")


def test_client_user_only_reaches_portal():
    client = _principal("client_user")
    assert is_allowed(client, "read", "client_portal")
    assert not is_allowed(client, "read", "matter")
    assert not is_allowed(client, "read", "dashboard")


def test_share_expiry_requires_system_config():
    assert not is_allowed(_principal("firm_admin"), "expire", "share")
