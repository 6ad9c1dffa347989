"""Dashboard statistics, health check and the matter audit trail."""

from packages.legal_dms.services.dashboard import format_storage


def test_format_storage():
    assert format_storage(0) == "0.0 MB"
    assert format_storage(5 * 1024 * 1024) == "5.0 MB"
    assert format_storage(1024 * 1024 * 1024) == "1024.0 MB"
    assert format_storage(3 * 1024 * 1024 * 1024 // 2) == "1.5 GB"


def test_dashboard_stats(api, world, upload_as):
    upload_as("lawyer_a", content=b"x" * 2048, title="Pleading")
    api.post("/clients", headers=world.headers("lawyer_a"), json={"name": "Initech"})

    stats = api.get("/dashboard/stats", headers=world.headers("admin_a")).json()

    assert stats["total_documents"] == 1
    assert stats["storage_used_bytes"] == 2048
    assert stats["storage_used"] == "0.0 MB"
    assert stats["active_matters"] == 1
    assert stats["total_clients"] == 2
    assert stats["total_users"] == 6
    assert stats["pending_incoming_shares"] == 0
    assert {(item["type"], item["title"]) for item in stats["recent_activity"]} == {
        ("document", "Pleading"),
        ("matter", "Acme v. Globex"),
    }


def test_dashboard_counts_pending_incoming_shares(api, world):
    api.post(
        "/matters/shares",
        headers=world.headers("lawyer_a"),
        json={"matter_id": str(world.matter_a), "shared_with_firm_id": str(world.firm_b), "role": "viewer"},
    )

    stats = api.get("/dashboard/stats", headers=world.headers("lawyer_b")).json()

    assert stats["pending_incoming_shares"] == 1
    assert stats["total_documents"] == 0


def test_dashboard_hides_matters_above_clearance(api, world):
    api.post("/matters", headers=world.headers("lawyer_a"), json={"title": "Board investigation", "security_class": 5})

    activity = api.get("/dashboard/stats", headers=world.headers("paralegal_a")).json()["recent_activity"]

    assert [item["title"] for item in activity] == ["Acme v. Globex"]


def test_health(api, storage):
    healthy = api.get("/health").json()
    assert (healthy["status"], healthy["database"], healthy["storage"]) == ("ok", "ok", "ok")

    storage.healthy = False
    degraded = api.get("/health").json()
    assert (degraded["status"], degraded["storage"]) == ("degraded", "unavailable")


def test_matter_audit_includes_shares_and_is_firm_scoped(api, world):
    created = api.post(
        "/matters/shares",
        headers=world.headers("lawyer_a"),
        json={"matter_id": str(world.matter_a), "shared_with_firm_id": str(world.firm_b), "role": "editor"},
    ).json()

    entries = api.get(f"/audit/matter/{world.matter_a}", headers=world.headers("manager_a")).json()["entries"]
    share_entries = [entry for entry in entries if entry["resource_type"] == "matter_share"]
    assert [(entry["action"], entry["resource_id"]) for entry in share_entries] == [
        ("matter_share_create", created["id"])
    ]

    assert api.get(f"/audit/matter/{world.matter_a}", headers=world.headers("lawyer_b")).status_code == 403
