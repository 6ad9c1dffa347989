"""Platform and firm administration through the HTTP API."""

import uuid


def test_requests_without_identity_are_rejected(api, world):
    assert api.get("/admin/users").status_code == 401
    assert api.get("/admin/users", headers={"X-User-ID": "not-a-uuid"}).status_code == 401
    assert api.get("/admin/users", headers={"X-User-ID": str(uuid.uuid4())}).status_code == 401


def test_super_admin_manages_firms(api, world):
    root = world.headers("root")

    created = api.post("/admin/firms", headers=root, json={"name": "Gamma LLC"})
    assert created.status_code == 201
    firm_id = created.json()["id"]

    listing = api.get("/admin/firms", headers=root, params={"search": "gamma"})
    assert listing.status_code == 200
    assert [firm["id"] for firm in listing.json()["firms"]] == [firm_id]

    renamed = api.patch(f"/admin/firms/{firm_id}", headers=root, json={"name": "Gamma Partners"})
    assert renamed.json()["name"] == "Gamma Partners"

    settings = api.patch(
        f"/admin/firms/{firm_id}/settings",
        headers=root,
        json={"settings": {"default_retention_years": 10}},
    )
    assert settings.json() == {"default_retention_years": 10}
    assert api.get(f"/admin/firms/{firm_id}/settings", headers=root).json() == {
        "default_retention_years": 10
    }

    assert api.delete(f"/admin/firms/{firm_id}", headers=root).status_code == 204
    assert api.get(f"/admin/firms/{firm_id}", headers=root).status_code == 404
    deleted = api.get("/admin/firms", headers=root, params={"include_deleted": True})
    assert firm_id in [firm["id"] for firm in deleted.json()["firms"]]


def test_firm_admin_cannot_manage_firms(api, world):
    response = api.post("/admin/firms", headers=world.headers("admin_a"), json={"name": "Rogue"})
    assert response.status_code == 403


def test_onboard_creates_firm_and_admin(api, world):
    response = api.post(
        "/admin/firms/onboard",
        headers=world.headers("root"),
        json={
            "name": "Delta Law",
            "admin_email": "Head@Delta.test",
            "admin_display_name": "Delta Head",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["admin"]["firm_id"] == body["firm"]["id"]
    assert body["admin"]["email"] == "head@delta.test"
    assert body["admin"]["roles"] == ["firm_admin"]
    assert body["admin"]["clearance_level"] == 8

    duplicate = api.post(
        "/admin/firms/onboard",
        headers=world.headers("root"),
        json={"name": "Delta Again", "admin_email": "head@delta.test", "admin_display_name": "X"},
    )
    assert duplicate.status_code == 409


def test_firm_stats(api, world):
    response = api.get(f"/admin/firms/{world.firm_a}/stats", headers=world.headers("root"))
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_users"] == 6
    assert stats["total_clients"] == 1
    assert stats["matters_by_status"] == {"active": 1}
    assert stats["total_documents"] == 0


def test_firm_admin_creates_and_lists_users(api, world):
    headers = world.headers("admin_a")
    created = api.post(
        "/admin/users",
        headers=headers,
        json={
            "email": "new.associate@alpha.test",
            "display_name": "New Associate",
            "roles": ["legal_professional"],
        },
    )
    assert created.status_code == 201
    user = created.json()
    assert user["firm_id"] == str(world.firm_a)
    assert user["clearance_level"] == 5

    listing = api.get("/admin/users", headers=headers, params={"role": "legal_professional"})
    emails = {item["email"] for item in listing.json()["users"]}
    assert emails == {"lawyer@alpha.test", "new.associate@alpha.test"}

    duplicate = api.post(
        "/admin/users",
        headers=headers,
        json={"email": "new.associate@alpha.test", "display_name": "Dup", "roles": ["paralegal"]},
    )
    assert duplicate.status_code == 409


def test_user_creation_validates_roles_and_clearance(api, world):
    headers = world.headers("admin_a")
    unknown = api.post(
        "/admin/users",
        headers=headers,
        json={"email": "x@alpha.test", "display_name": "X", "roles": ["wizard"]},
    )
    assert unknown.status_code == 400

    escalation = api.post(
        "/admin/users",
        headers=headers,
        json={"email": "y@alpha.test", "display_name": "Y", "roles": ["super_admin"]},
    )
    assert escalation.status_code == 403

    out_of_range = api.post(
        "/admin/users",
        headers=headers,
        json={
            "email": "z@alpha.test",
            "display_name": "Z",
            "roles": ["paralegal"],
            "clearance_level": 9,
        },
    )
    assert out_of_range.status_code == 400

    invalid_level = api.post(
        "/admin/users",
        headers=headers,
        json={"email": "w@alpha.test", "display_name": "W", "roles": ["paralegal"], "clearance_level": 11},
    )
    assert invalid_level.status_code == 422


def test_firm_admin_cannot_touch_other_firm_users(api, world):
    response = api.get(f"/admin/users/{world.users['lawyer_b']}", headers=world.headers("admin_a"))
    assert response.status_code == 403


def test_deactivate_and_reactivate(api, world):
    headers = world.headers("admin_a")
    lawyer = world.users["lawyer_a"]

    deactivated = api.post(f"/admin/users/{lawyer}/deactivate", headers=headers)
    assert deactivated.json()["is_active"] is False
    # inactive users can no longer authenticate
    assert api.get("/matters", headers=world.headers("lawyer_a")).status_code == 401

    reactivated = api.post(f"/admin/users/{lawyer}/activate", headers=headers)
    assert reactivated.json()["is_active"] is True

    self_deactivate = api.post(f"/admin/users/{world.users['admin_a']}/deactivate", headers=headers)
    assert self_deactivate.status_code == 400


def test_role_change_clamps_clearance(api, world):
    headers = world.headers("admin_a")
    manager = world.users["manager_a"]

    response = api.put(f"/admin/users/{manager}/roles", headers=headers, json={"roles": ["client_user"]})

    assert response.status_code == 200
    assert response.json()["roles"] == ["client_user"]
    # legal_manager default 7 is outside client_user's 1-4 range
    assert response.json()["clearance_level"] == 2


def test_clearance_endpoints(api, world):
    headers = world.headers("admin_a")
    lawyer = world.users["lawyer_a"]

    info = api.get(f"/admin/users/{lawyer}/clearance", headers=headers).json()
    assert info["clearance_level"] == 5
    assert info["label"] == "Secret"
    assert (info["min_level"], info["max_level"]) == (3, 8)

    updated = api.put(f"/admin/users/{lawyer}/clearance", headers=headers, json={"clearance_level": 7})
    assert updated.json()["clearance_level"] == 7

    too_high = api.put(f"/admin/users/{lawyer}/clearance", headers=headers, json={"clearance_level": 9})
    assert too_high.status_code == 400

    own = api.get(f"/admin/users/{world.users['paralegal_a']}/clearance", headers=world.headers("paralegal_a"))
    assert own.status_code == 200


def test_bulk_user_operations_report_failures(api, world):
    response = api.post(
        "/admin/users/bulk",
        headers=world.headers("admin_a"),
        json={
            "user_ids": [str(world.users["paralegal_a"]), str(world.users["lawyer_b"])],
            "operation": "assign_role",
            "role": "support_staff",
        },
    )
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 1
    assert body["failed"][0]["user_id"] == str(world.users["lawyer_b"])

    user = api.get(f"/admin/users/{world.users['paralegal_a']}", headers=world.headers("admin_a"))
    assert user.json()["roles"] == ["paralegal", "support_staff"]


def test_bulk_role_removal_revalidates_clearance(api, world):
    headers = world.headers("admin_a")
    manager = str(world.users["manager_a"])
    lawyer = str(world.users["lawyer_a"])
    roles = api.put(f"/admin/users/{manager}/roles", headers=headers, json={"roles": ["legal_manager", "paralegal"]})
    assert roles.json()["clearance_level"] == 7

    response = api.post(
        "/admin/users/bulk",
        headers=headers,
        json={"user_ids": [manager, lawyer], "operation": "remove_role", "role": "legal_manager"},
    )
    assert response.json()["processed"] == 2

    user = api.get(f"/admin/users/{manager}", headers=headers).json()
    assert user["roles"] == ["paralegal"]
    assert user["clearance_level"] == 4

    last_role = api.post(
        "/admin/users/bulk",
        headers=headers,
        json={"user_ids": [manager], "operation": "remove_role", "role": "paralegal"},
    ).json()
    assert last_role["processed"] == 0
    assert last_role["failed"] == [{"user_id": manager, "error": "A user must keep at least one role"}]
    assert api.get(f"/admin/users/{manager}", headers=headers).json()["roles"] == ["paralegal"]


def test_roles_and_teams(api, world):
    headers = world.headers("admin_a")
    roles = api.get("/admin/roles", headers=headers).json()
    assert roles[0]["name"] == "super_admin"
    assert len(roles) == 7

    team = api.post(
        "/admin/teams",
        headers=headers,
        json={"name": "Litigation", "member_ids": [str(world.users["lawyer_a"])]},
    )
    assert team.status_code == 201
    assert team.json()["member_ids"] == [str(world.users["lawyer_a"])]

    foreign = api.post(
        "/admin/teams",
        headers=headers,
        json={"name": "Mixed", "member_ids": [str(world.users["lawyer_b"])]},
    )
    assert foreign.status_code == 400

    assert [item["name"] for item in api.get("/admin/teams", headers=headers).json()] == ["Litigation"]


def test_retention_class_lifecycle(api, world):
    headers = world.headers("admin_a")
    created = api.post(
        "/admin/retention-classes",
        headers=headers,
        json={"name": "Contracts", "retention_years": 10},
    )
    assert created.status_code == 201
    class_id = created.json()["id"]

    duplicate = api.post(
        "/admin/retention-classes", headers=headers, json={"name": "Contracts", "retention_years": 3}
    )
    assert duplicate.status_code == 409

    updated = api.patch(
        f"/admin/retention-classes/{class_id}", headers=headers, json={"retention_years": 12}
    )
    assert updated.json()["retention_years"] == 12

    other_firm = api.get(f"/admin/retention-classes/{class_id}", headers=world.headers("admin_b"))
    assert other_firm.status_code == 403

    assert api.delete(f"/admin/retention-classes/{class_id}", headers=headers).status_code == 204
    assert api.get("/admin/retention-classes", headers=headers).json() == []


def test_audit_log_is_firm_scoped(api, world):
    api.post(
        "/admin/users",
        headers=world.headers("admin_a"),
        json={"email": "audited@alpha.test", "display_name": "Audited", "roles": ["paralegal"]},
    )
    api.post(
        "/admin/users",
        headers=world.headers("admin_b"),
        json={"email": "audited@beta.test", "display_name": "Audited", "roles": ["paralegal"]},
    )

    logs = api.get(
        "/admin/audit-logs", headers=world.headers("admin_a"), params={"action": "user_create"}
    ).json()

    assert logs["total"] == 1
    assert logs["logs"][0]["firm_id"] == str(world.firm_a)
    assert logs["logs"][0]["risk_level"] == "medium"
