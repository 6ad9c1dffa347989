"""Platform statistics and system settings, and how the settings gate features."""

import datetime as dt

from packages.legal_dms.services import RetentionService


def _set(api, world, **values):
    response = api.patch("/admin/system-settings", headers=world.headers("root"), json=values)
    assert response.status_code == 200
    return response.json()


def test_system_stats_scope(api, world, upload_as):
    upload_as("lawyer_a", confidential="true")
    held = upload_as("lawyer_a", filename="held.txt", content=b"12345").json()
    api.post(f"/documents/{held['id']}/legal-hold", headers=world.headers("manager_a"), json={"reason": "Audit"})

    firm = api.get("/admin/system-stats", headers=world.headers("admin_a"))
    assert firm.status_code == 200
    stats = firm.json()
    assert stats["users"]["total"] == 6
    assert stats["users"]["by_role"]["legal_professional"] == 1
    assert stats["documents"] == {"total": 2, "confidential": 1, "under_legal_hold": 1, "soft_deleted": 0}
    assert stats["matters"] == {"total": 1, "active": 1, "by_status": {"active": 1}}
    assert stats["storage"]["total_size_bytes"] == 47 + 5

    platform = api.get("/admin/system-stats", headers=world.headers("root")).json()
    assert platform["users"]["total"] == 9
    assert platform["users"]["by_role"]["firm_admin"] == 2

    other_firm = api.get("/admin/system-stats", headers=world.headers("admin_b")).json()
    assert other_firm["documents"]["total"] == 0

    assert api.get("/admin/system-stats", headers=world.headers("manager_a")).status_code == 403


def test_system_settings_defaults_update_and_reset(api, world):
    defaults = api.get("/admin/system-settings", headers=world.headers("admin_a"))
    assert defaults.status_code == 200
    body = defaults.json()
    assert body["default_retention_years"] == 7
    assert body["max_file_size_mb"] == 100
    assert body["enable_cross_firm_sharing"] is True
    assert body["backup_config"] == {"frequency": "daily", "retention_days": 30, "enabled": True}
    assert body["updated_at"] is None

    updated = _set(
        api,
        world,
        platform_name="Alpha DMS",
        watermark_config={"enabled": True, "text": "PRIVILEGED", "opacity": 0.5},
    )
    assert updated["platform_name"] == "Alpha DMS"
    assert updated["watermark_config"]["text"] == "PRIVILEGED"
    assert updated["max_file_size_mb"] == 100
    assert updated["updated_at"] is not None

    reset = api.post("/admin/system-settings/reset", headers=world.headers("root"))
    assert reset.json()["platform_name"] == "Legal Document Management System"
    assert reset.json()["updated_at"] is None

    logs = api.get("/admin/audit-logs", headers=world.headers("root"), params={"action": "system_settings_update"})
    assert logs.json()["logs"][0]["details"] == {"keys": ["platform_name", "watermark_config"]}


def test_system_settings_permissions_and_validation(api, world):
    root = world.headers("root")
    assert api.get("/admin/system-settings", headers=world.headers("lawyer_a")).status_code == 403
    assert api.patch("/admin/system-settings", headers=world.headers("admin_a"), json={"enable_ocr": False}).status_code == 403
    assert api.post("/admin/system-settings/reset", headers=world.headers("admin_a")).status_code == 403

    assert api.patch("/admin/system-settings", headers=root, json={"max_file_size_mb": 0}).status_code == 422
    assert api.patch("/admin/system-settings", headers=root, json={"backup_config": {"frequency": "hourly"}}).status_code == 422
    assert api.patch("/admin/system-settings", headers=root, json={}).status_code == 400


def test_cross_firm_sharing_switch(api, world):
    _set(api, world, enable_cross_firm_sharing=False)
    payload = {"matter_id": str(world.matter_a), "shared_with_firm_id": str(world.firm_b), "role": "viewer"}

    denied = api.post("/matters/shares", headers=world.headers("lawyer_a"), json=payload)
    assert denied.status_code == 403
    assert "disabled" in denied.json()["detail"]

    _set(api, world, enable_cross_firm_sharing=True)
    assert api.post("/matters/shares", headers=world.headers("lawyer_a"), json=payload).status_code == 201


def test_legal_hold_switch(api, world, upload_as):
    document = upload_as("lawyer_a").json()
    _set(api, world, enable_legal_holds=False)

    response = api.post(
        f"/documents/{document['id']}/legal-hold", headers=world.headers("manager_a"), json={"reason": "Dispute"}
    )
    assert response.status_code == 403


def test_upload_size_and_text_extraction_follow_settings(api, world, upload_as):
    _set(api, world, max_file_size_mb=1, enable_ocr=False)

    too_big = upload_as("lawyer_a", content=b"x" * (1024 * 1024 + 1))
    assert too_big.status_code == 400
    assert "exceeds maximum" in too_big.json()["detail"]

    assert upload_as("lawyer_a").status_code == 201
    found = api.get("/documents", headers=world.headers("lawyer_a"), params={"search": "globex"}).json()
    assert found["total"] == 0


def test_default_retention_comes_from_settings(api, world, session, settings, upload_as, principal_for):
    upload_as("lawyer_a")
    api.patch(f"/matters/{world.matter_a}/status", headers=world.headers("manager_a"), json={"status": "closed"})
    session.expire_all()
    service = RetentionService(session, settings)
    manager = principal_for("manager_a")
    in_two_years = dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=366 * 2)

    assert service.eligible_for_deletion(manager, now=in_two_years) == []

    _set(api, world, default_retention_years=1)
    session.expire_all()
    assert len(service.eligible_for_deletion(manager, now=in_two_years)) == 1
