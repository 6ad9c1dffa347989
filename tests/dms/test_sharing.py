"""Cross-firm matter sharing: state machine, restrictions and shared downloads."""

import datetime as dt
import uuid
from types import SimpleNamespace

import pytest

from packages.legal_dms.api.dependencies import client_ip
from packages.legal_dms.models import MatterShare
from packages.legal_dms.schema.enums import ShareRole, ShareStatus
from packages.legal_dms.services import MatterSharingService
from packages.legal_dms.services.sharing import check_restrictions, check_transition, default_permissions


def _share(**restrictions):
    return SimpleNamespace(restrictions=restrictions, download_count=0)


def _document(filename="brief.pdf", mime_type="application/pdf"):
    return SimpleNamespace(original_filename=filename, mime_type=mime_type)


def test_default_permissions_per_role():
    viewer = default_permissions(ShareRole.VIEWER)
    assert viewer["can_download"] is False
    assert viewer["watermark_required"] is True

    editor = default_permissions(ShareRole.EDITOR, {"watermark_required": True, "can_upload": None})
    assert editor["can_download"] is True
    assert editor["can_upload"] is True
    assert editor["watermark_required"] is True


def test_check_transition():
    check_transition(ShareStatus.PENDING, ShareStatus.ACCEPTED)
    check_transition(ShareStatus.ACCEPTED, ShareStatus.REVOKED)
    for current, target in [
        (ShareStatus.ACCEPTED, ShareStatus.DECLINED),
        (ShareStatus.DECLINED, ShareStatus.ACCEPTED),
        (ShareStatus.REVOKED, ShareStatus.ACCEPTED),
        (ShareStatus.EXPIRED, ShareStatus.ACCEPTED),
    ]:
        with pytest.raises(ValueError):
            check_transition(current, target)


def test_restrictions_document_types():
    check_restrictions(_share(allowed_document_types=["pdf"]), _document())
    check_restrictions(_share(allowed_document_types=[".PDF"]), _document())
    with pytest.raises(PermissionError):
        check_restrictions(_share(allowed_document_types=["docx"]), _document())


def test_restrictions_ip_whitelist():
    share = _share(ip_whitelist=["10.0.0.0/8", "192.168.1.5"])
    check_restrictions(share, _document(), ip_address="10.20.30.40")
    check_restrictions(share, _document(), ip_address="192.168.1.5")
    for address in ("192.168.1.6", None, "not-an-ip"):
        with pytest.raises(PermissionError):
            check_restrictions(share, _document(), ip_address=address)


def test_restrictions_time_window():
    share = _share(time_restrictions={"start_time": "09:00", "end_time": "17:00", "timezone": "UTC"})
    check_restrictions(share, _document(), now=dt.datetime(2024, 5, 2, 10, 30, tzinfo=dt.timezone.utc))
    with pytest.raises(PermissionError):
        check_restrictions(share, _document(), now=dt.datetime(2024, 5, 2, 20, 0, tzinfo=dt.timezone.utc))

    overnight = _share(time_restrictions={"start_time": "22:00", "end_time": "06:00"})
    check_restrictions(overnight, _document(), now=dt.datetime(2024, 5, 2, 23, 0, tzinfo=dt.timezone.utc))


def test_restrictions_download_limit_only_counts_downloads():
    share = _share(max_download_count=1)
    share.download_count = 1
    check_restrictions(share, _document())
    with pytest.raises(PermissionError):
        check_restrictions(share, _document(), counting_download=True)


# ========================================================================
# API
# ========================================================================


def _create(api, world, user="lawyer_a", **body):
    payload = {
        "matter_id": str(world.matter_a),
        "shared_with_firm_id": str(world.firm_b),
        "role": "viewer",
    }
    payload.update(body)
    return api.post("/matters/shares", headers=world.headers(user), json=payload)


def _accepted(api, world, **body):
    share = _create(api, world, **body).json()
    response = api.post(f"/matters/shares/{share['id']}/accept", headers=world.headers("lawyer_b"))
    assert response.status_code == 200
    return share


def test_create_share(api, world):
    response = _create(api, world, invitation_message="Co-counsel on Globex")

    assert response.status_code == 201
    share = response.json()
    assert share["status"] == "pending"
    assert share["matter_title"] == "Acme v. Globex"
    assert share["shared_by_firm_name"] == "Alpha Partners"
    assert share["shared_with_firm_name"] == "Beta Legal"
    assert share["permissions"]["can_download"] is False
    assert share["permissions"]["watermark_required"] is True
    assert share["is_active"] is False


def test_create_share_validation(api, world):
    assert _create(api, world, shared_with_firm_id=str(world.firm_a)).status_code == 400
    assert _create(api, world, role="owner").status_code == 422
    assert _create(api, world, user="paralegal_a").status_code == 403
    assert _create(api, world, user="lawyer_b").status_code == 403
    past = (dt.datetime.now(dt.timezone.utc) - dt.timedelta(days=1)).isoformat()
    assert _create(api, world, expires_at=past).status_code == 400
    bad_zone = {"time_restrictions": {"start_time": "09:00", "end_time": "17:00", "timezone": "Mars/Olympus"}}
    assert _create(api, world, restrictions=bad_zone).status_code == 400

    assert _create(api, world).status_code == 201
    assert _create(api, world).status_code == 409


def test_incoming_outgoing_and_search(api, world):
    share = _create(api, world).json()

    outgoing = api.get("/matters/shares/outgoing", headers=world.headers("lawyer_a")).json()
    incoming = api.get("/matters/shares/incoming", headers=world.headers("lawyer_b")).json()
    assert [item["id"] for item in outgoing["shares"]] == [share["id"]]
    assert [item["id"] for item in incoming["shares"]] == [share["id"]]
    accepted_only = api.get(
        "/matters/shares/incoming", headers=world.headers("lawyer_b"), params={"status": "accepted"}
    ).json()
    assert accepted_only["total"] == 0

    by_matter = api.get(f"/matters/shares/matter/{world.matter_a}", headers=world.headers("lawyer_a")).json()
    assert by_matter["total"] == 1

    firms = api.get("/matters/shares/firms/search", headers=world.headers("lawyer_a"), params={"q": "legal"})
    assert [firm["name"] for firm in firms.json()] == ["Beta Legal"]


def test_accept_decline_revoke(api, world):
    share = _create(api, world).json()
    path = f"/matters/shares/{share['id']}"

    assert api.post(f"{path}/accept", headers=world.headers("lawyer_a")).status_code == 403

    accepted = api.post(f"{path}/accept", headers=world.headers("lawyer_b")).json()
    assert accepted["status"] == "accepted"
    assert accepted["accepted_by_user_id"] == str(world.users["lawyer_b"])
    assert accepted["is_active"] is True

    assert api.post(f"{path}/decline", headers=world.headers("lawyer_b")).status_code == 400
    assert api.post(f"{path}/revoke", headers=world.headers("lawyer_b")).status_code == 403

    revoked = api.post(f"{path}/revoke", headers=world.headers("lawyer_a")).json()
    assert revoked["status"] == "revoked"
    assert revoked["accepted_at"] is None
    assert api.post(f"{path}/accept", headers=world.headers("lawyer_b")).status_code == 400


def test_update_share_terms_and_status(api, world):
    share = _create(api, world).json()
    path = f"/matters/shares/{share['id']}"

    assert api.patch(path, headers=world.headers("lawyer_b"), json={"role": "editor"}).status_code == 403
    assert api.patch(path, headers=world.headers("lawyer_a"), json={"status": "accepted"}).status_code == 403

    updated = api.patch(
        path,
        headers=world.headers("lawyer_a"),
        json={"role": "editor", "permissions": {"watermark_required": True}, "restrictions": {"max_download_count": 3}},
    ).json()
    assert updated["role"] == "editor"
    assert updated["permissions"]["can_download"] is True
    assert updated["permissions"]["watermark_required"] is True
    assert updated["restrictions"] == {"max_download_count": 3}

    accepted = api.patch(path, headers=world.headers("lawyer_b"), json={"status": "accepted"})
    assert accepted.json()["status"] == "accepted"


def test_accepting_expired_share_marks_it_expired(api, world, session):
    share = _create(api, world).json()
    row = session.get(MatterShare, uuid.UUID(share["id"]))
    row.expires_at = dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=5)
    session.commit()

    response = api.post(f"/matters/shares/{share['id']}/accept", headers=world.headers("lawyer_b"))

    assert response.status_code == 400
    fetched = api.get(f"/matters/shares/{share['id']}", headers=world.headers("lawyer_a")).json()
    assert fetched["status"] == "expired"


def test_accepting_declined_share_after_expiry_keeps_it_declined(api, world, session):
    share = _create(api, world).json()
    path = f"/matters/shares/{share['id']}"
    assert api.post(f"{path}/decline", headers=world.headers("lawyer_b")).status_code == 200
    row = session.get(MatterShare, uuid.UUID(share["id"]))
    row.expires_at = dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=5)
    session.commit()

    response = api.post(f"{path}/accept", headers=world.headers("lawyer_b"))

    assert response.status_code == 400
    assert "Invalid status transition" in response.json()["detail"]
    assert api.get(path, headers=world.headers("lawyer_a")).json()["status"] == "declined"


def test_expire_old_shares(api, world, session, settings):
    future = (dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=1)).isoformat()
    share = _accepted(api, world, expires_at=future)

    assert api.post("/matters/shares/expire", headers=world.headers("lawyer_a")).status_code == 403
    assert api.post("/matters/shares/expire", headers=world.headers("root")).json() == {"expired": 0}

    service = MatterSharingService(session, settings)
    later = dt.datetime.now(dt.timezone.utc) + dt.timedelta(days=2)
    assert service.expire_old_shares(now=later) == 1
    assert service.expire_old_shares(now=later) == 0

    fetched = api.get(f"/matters/shares/{share['id']}", headers=world.headers("lawyer_b")).json()
    assert fetched["status"] == "expired"


def test_share_stats(api, world):
    _accepted(api, world)

    mine = api.get("/matters/shares/stats", headers=world.headers("lawyer_a")).json()
    theirs = api.get("/matters/shares/stats", headers=world.headers("lawyer_b")).json()

    assert mine["outgoing"]["accepted"] == 1
    assert mine["incoming"]["accepted"] == 0
    assert (mine["active_outgoing"], mine["active_incoming"]) == (1, 0)
    assert (theirs["active_outgoing"], theirs["active_incoming"]) == (0, 1)


def test_delete_share(api, world):
    share = _create(api, world).json()
    path = f"/matters/shares/{share['id']}"

    assert api.delete(path, headers=world.headers("lawyer_b")).status_code == 403
    assert api.delete(path, headers=world.headers("lawyer_a")).status_code == 204
    assert api.get(path, headers=world.headers("lawyer_a")).status_code == 404


# ========================================================================
# 공유 문서
# ========================================================================


def test_pending_share_gives_no_document_access(api, world, upload_as):
    upload_as("lawyer_a")
    share = _create(api, world).json()

    response = api.get(f"/shares/{share['id']}/documents", headers=world.headers("lawyer_b"))

    assert response.status_code == 403


def test_viewer_share_lists_with_watermark_but_cannot_download(api, world, upload_as):
    document = upload_as("lawyer_a").json()
    share = _accepted(api, world)

    listing = api.get(f"/shares/{share['id']}/documents", headers=world.headers("lawyer_b"))
    assert listing.status_code == 200
    assert listing.headers["x-watermark-required"] == "true"
    assert [item["id"] for item in listing.json()] == [document["id"]]

    download = api.get(
        f"/shares/{share['id']}/documents/{document['id']}/download", headers=world.headers("lawyer_b")
    )
    assert download.status_code == 403

    # the sharing firm does not use the recipient endpoints
    assert api.get(f"/shares/{share['id']}/documents", headers=world.headers("lawyer_a")).status_code == 403


def test_editor_share_downloads_and_counts(api, world, upload_as):
    document = upload_as("lawyer_a", content=b"shared content").json()
    share = _accepted(api, world, role="editor", restrictions={"max_download_count": 1})
    path = f"/shares/{share['id']}/documents/{document['id']}/download"

    first = api.get(path, headers=world.headers("lawyer_b"))
    assert first.status_code == 200
    assert first.content == b"shared content"
    assert "x-watermark-required" not in first.headers

    assert api.get(path, headers=world.headers("lawyer_b")).status_code == 403
    fetched = api.get(f"/matters/shares/{share['id']}", headers=world.headers("lawyer_a")).json()
    assert fetched["download_count"] == 1


def test_watermark_override_on_download(api, world, upload_as):
    document = upload_as("lawyer_a").json()
    share = _accepted(api, world, role="collaborator", permissions={"watermark_required": True})

    response = api.get(
        f"/shares/{share['id']}/documents/{document['id']}/download", headers=world.headers("lawyer_b")
    )

    assert response.status_code == 200
    assert response.headers["x-watermark-required"] == "true"


def test_ip_and_type_restrictions_on_shared_documents(api, world, upload_as):
    text_doc = upload_as("lawyer_a").json()
    pdf_doc = upload_as(
        "lawyer_a", filename="brief.pdf", content=b"%PDF-not-really", content_type="application/pdf"
    ).json()
    share = _accepted(
        api,
        world,
        role="editor",
        restrictions={"allowed_document_types": ["pdf"], "ip_whitelist": ["10.0.0.0/8"]},
    )
    headers = {**world.headers("lawyer_b"), "X-Forwarded-For": "10.1.2.3"}

    listing = api.get(f"/shares/{share['id']}/documents", headers=headers).json()
    assert [item["id"] for item in listing] == [pdf_doc["id"]]

    base = f"/shares/{share['id']}/documents"
    assert api.get(f"{base}/{pdf_doc['id']}/download", headers=headers).status_code == 200
    assert api.get(f"{base}/{text_doc['id']}/download", headers=headers).status_code == 403

    outside = {**world.headers("lawyer_b"), "X-Forwarded-For": "203.0.113.9"}
    assert api.get(f"{base}/{pdf_doc['id']}/download", headers=outside).status_code == 403

    spoofed = {**world.headers("lawyer_b"), "X-Forwarded-For": "10.9.9.9, 203.0.113.9"}
    assert api.get(f"{base}/{pdf_doc['id']}/download", headers=spoofed).status_code == 403


def test_client_ip_only_trusts_proxy_hops():
    def request(forwarded=None, host="198.51.100.7"):
        headers = {"X-Forwarded-For": forwarded} if forwarded else {}
        return SimpleNamespace(headers=headers, client=SimpleNamespace(host=host))

    assert client_ip(request("10.1.2.3"), 0) == "198.51.100.7"
    assert client_ip(request("10.1.2.3"), 1) == "10.1.2.3"
    assert client_ip(request("10.9.9.9, 203.0.113.9"), 1) == "203.0.113.9"
    assert client_ip(request("10.9.9.9, 203.0.113.9"), 2) == "10.9.9.9"
    assert client_ip(request("10.9.9.9"), 5) == "10.9.9.9"
    assert client_ip(request(), 1) == "198.51.100.7"


def test_share_history_for_matter(api, world):
    share = _accepted(api, world)
    path = f"/matters/shares/matter/{world.matter_a}/history"

    response = api.get(path, headers=world.headers("lawyer_a"))

    assert response.status_code == 200
    history = response.json()
    assert [entry["action"] for entry in history] == ["matter_share_create", "matter_share_accepted"]
    assert {entry["resource_id"] for entry in history} == {share["id"]}

    assert api.get(path, headers=world.headers("lawyer_b")).status_code == 403
    assert api.get(f"/matters/shares/matter/{uuid.uuid4()}/history", headers=world.headers("lawyer_a")).status_code == 404
