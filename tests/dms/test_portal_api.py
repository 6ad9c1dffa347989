"""Client portal: a client user's view of its own matters and documents."""

PORTAL_UPLOAD = "/client-portal/documents"


def test_portal_requires_client_binding(api, world):
    assert api.get("/client-portal/dashboard", headers=world.headers("lawyer_a")).status_code == 403
    assert api.get("/client-portal/dashboard", headers=world.headers("client_a")).status_code == 200


def test_portal_hides_confidential_and_privileged(api, world, upload_as):
    public = upload_as("lawyer_a", title="Engagement letter").json()
    confidential = upload_as("lawyer_a", title="Strategy memo", confidential="true").json()
    privileged = upload_as("lawyer_a", title="Counsel advice", privileged="true").json()
    client = world.headers("client_a")

    listing = api.get("/client-portal/documents", headers=client).json()
    assert [doc["id"] for doc in listing["documents"]] == [public["id"]]

    assert api.get(f"/client-portal/documents/{public['id']}", headers=client).status_code == 200
    assert api.get(f"/client-portal/documents/{confidential['id']}", headers=client).status_code == 403
    assert api.get(f"/client-portal/documents/{privileged['id']}/download", headers=client).status_code == 403

    download = api.get(f"/client-portal/documents/{public['id']}/download", headers=client)
    assert download.status_code == 200
    assert download.content == b"This agreement is made between Acme and Globex."


def test_portal_dashboard_counts(api, world, upload_as):
    upload_as("lawyer_a")
    upload_as("lawyer_a", confidential="true", filename="memo.txt")

    dashboard = api.get("/client-portal/dashboard", headers=world.headers("client_a")).json()

    assert dashboard["client"]["name"] == "Acme Holdings"
    assert dashboard["stats"] == {
        "active_matters": 1,
        "total_matters": 1,
        "total_documents": 2,
        "recent_documents": 2,
        "confidential_documents": 1,
    }
    assert [matter["title"] for matter in dashboard["recent_matters"]] == ["Acme v. Globex"]
    assert len(dashboard["recent_documents"]) == 1


def test_portal_matters_are_limited_to_the_client(api, world):
    other = api.post("/matters", headers=world.headers("lawyer_a"), json={"title": "Internal"}).json()
    client = world.headers("client_a")

    matters = api.get("/client-portal/matters", headers=client).json()
    assert [matter["id"] for matter in matters["matters"]] == [str(world.matter_a)]
    assert api.get(f"/client-portal/matters/{world.matter_a}", headers=client).status_code == 200
    assert api.get(f"/client-portal/matters/{other['id']}", headers=client).status_code == 404


def test_client_upload(api, world, upload_as, storage):
    response = upload_as("client_a", path=PORTAL_UPLOAD, privileged="true", security_class=3)

    assert response.status_code == 201
    document = response.json()
    assert document["uploaded_by_type"] == "client"
    assert document["security_class"] is None
    assert document["metadata"]["privileged"] is False
    assert len(storage.objects) == 1

    staff_view = api.get(f"/documents/{document['id']}", headers=world.headers("lawyer_a"))
    assert staff_view.status_code == 200


def test_client_upload_rejections(api, world, upload_as):
    other = api.post("/matters", headers=world.headers("lawyer_a"), json={"title": "Internal"}).json()
    assert upload_as("client_a", matter_id=other["id"], path=PORTAL_UPLOAD).status_code == 404

    bad_type = upload_as(
        "client_a", path=PORTAL_UPLOAD, filename="run.exe", content_type="application/x-msdownload"
    )
    assert bad_type.status_code == 400

    api.patch(f"/matters/{world.matter_a}/status", headers=world.headers("lawyer_a"), json={"status": "closed"})
    assert upload_as("client_a", path=PORTAL_UPLOAD).status_code == 400


def test_upload_settings(api, world):
    settings = api.get("/client-portal/upload-settings", headers=world.headers("client_a")).json()

    assert settings["upload_enabled"] is True
    assert "application/pdf" in settings["allowed_file_types"]
    assert [matter["title"] for matter in settings["accessible_matters"]] == ["Acme v. Globex"]

    api.patch(f"/matters/{world.matter_a}/status", headers=world.headers("lawyer_a"), json={"status": "archived"})
    closed = api.get("/client-portal/upload-settings", headers=world.headers("client_a")).json()
    assert closed["upload_enabled"] is False
