"""Clients, matters and matter teams."""


def test_client_crud_and_counts(api, world):
    headers = world.headers("lawyer_a")
    created = api.post(
        "/clients",
        headers=headers,
        json={"name": "Initech", "external_ref": "CL-2", "contact_email": "legal@initech.test"},
    )
    assert created.status_code == 201
    client_id = created.json()["id"]
    assert created.json()["firm_id"] == str(world.firm_a)

    duplicate = api.post("/clients", headers=headers, json={"name": "Other", "external_ref": "CL-2"})
    assert duplicate.status_code == 409

    listing = api.get("/clients", headers=headers).json()
    assert [item["name"] for item in listing["clients"]] == ["Acme Holdings", "Initech"]
    acme = listing["clients"][0]
    assert (acme["matter_count"], acme["document_count"]) == (1, 0)

    updated = api.patch(f"/clients/{client_id}", headers=headers, json={"status": "inactive"})
    assert updated.json()["status"] == "inactive"
    filtered = api.get("/clients", headers=headers, params={"status": "inactive"}).json()
    assert [item["id"] for item in filtered["clients"]] == [client_id]

    # lawyers may not delete clients
    assert api.delete(f"/clients/{client_id}", headers=headers).status_code == 403
    assert api.delete(f"/clients/{client_id}", headers=world.headers("admin_a")).status_code == 204


def test_client_with_matters_cannot_be_deleted(api, world):
    response = api.delete(f"/clients/{world.client_a}", headers=world.headers("admin_a"))
    assert response.status_code == 409


def test_clients_are_firm_isolated(api, world):
    assert api.get(f"/clients/{world.client_a}", headers=world.headers("lawyer_b")).status_code == 403
    assert api.get("/clients", headers=world.headers("lawyer_b")).json()["total"] == 0


def test_client_matters_listing(api, world):
    matters = api.get(f"/clients/{world.client_a}/matters", headers=world.headers("lawyer_a")).json()
    assert [matter["title"] for matter in matters] == ["Acme v. Globex"]


def test_create_matter_for_client(api, world):
    response = api.post(
        "/matters",
        headers=world.headers("lawyer_a"),
        json={"title": "Acme licensing", "client_id": str(world.client_a), "security_class": 3},
    )
    assert response.status_code == 201
    matter = response.json()
    assert matter["firm_id"] == str(world.firm_a)
    assert matter["client_name"] == "Acme Holdings"
    assert matter["status"] == "active"
    assert matter["documents_count"] == 0


def test_create_matter_validation(api, world):
    headers = world.headers("lawyer_a")
    foreign_client = api.post(
        "/matters", headers=world.headers("lawyer_b"), json={"title": "Poach", "client_id": str(world.client_a)}
    )
    assert foreign_client.status_code == 403

    over_cleared = api.post(
        "/matters", headers=world.headers("paralegal_a"), json={"title": "Secret", "security_class": 4}
    )
    assert over_cleared.status_code == 403

    out_of_range = api.post("/matters", headers=headers, json={"title": "Bad", "security_class": 6})
    assert out_of_range.status_code == 422


def test_matter_clearance_hides_and_blocks(api, world):
    secret = api.post(
        "/matters", headers=world.headers("lawyer_a"), json={"title": "Board investigation", "security_class": 5}
    ).json()

    paralegal = world.headers("paralegal_a")
    titles = [item["title"] for item in api.get("/matters", headers=paralegal).json()["matters"]]
    assert "Board investigation" not in titles
    assert "Acme v. Globex" in titles
    assert api.get(f"/matters/{secret['id']}", headers=paralegal).status_code == 403


def test_matter_search_and_status(api, world):
    headers = world.headers("lawyer_a")
    found = api.get("/matters", headers=headers, params={"search": "acme"}).json()
    assert found["total"] == 1

    closed = api.patch(f"/matters/{world.matter_a}/status", headers=headers, json={"status": "closed"})
    assert closed.json()["status"] == "closed"
    assert api.get("/matters", headers=headers, params={"status": "active"}).json()["total"] == 0

    invalid = api.patch(f"/matters/{world.matter_a}/status", headers=headers, json={"status": "frozen"})
    assert invalid.status_code == 422


def test_update_matter(api, world):
    response = api.patch(
        f"/matters/{world.matter_a}",
        headers=world.headers("lawyer_a"),
        json={"title": "Acme Holdings v. Globex", "description": None},
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Acme Holdings v. Globex"
    assert response.json()["description"] is None


def test_delete_matter_requires_no_live_documents(api, world, upload_as):
    upload_as("lawyer_a")
    admin = world.headers("admin_a")

    blocked = api.delete(f"/matters/{world.matter_a}", headers=admin)
    assert blocked.status_code == 400

    empty = api.post("/matters", headers=admin, json={"title": "Empty"}).json()
    assert api.delete(f"/matters/{empty['id']}", headers=admin).status_code == 204
    assert api.get(f"/matters/{empty['id']}", headers=admin).status_code == 404


def test_matter_team_management(api, world):
    headers = world.headers("lawyer_a")
    path = f"/matters/{world.matter_a}/team"

    added = api.post(
        path,
        headers=headers,
        json={"user_id": str(world.users["paralegal_a"]), "role": "paralegal", "access_level": "read_write"},
    )
    assert added.status_code == 201
    assert added.json()["email"] == "paralegal@alpha.test"

    again = api.post(path, headers=headers, json={"user_id": str(world.users["paralegal_a"]), "role": "paralegal"})
    assert again.status_code == 409

    outsider = api.post(path, headers=headers, json={"user_id": str(world.users["lawyer_b"]), "role": "associate"})
    assert outsider.status_code == 400

    team = api.get(path, headers=headers).json()
    assert [(member["role"], member["access_level"]) for member in team] == [("paralegal", "read_write")]

    assert api.delete(f"{path}/{world.users['paralegal_a']}", headers=headers).status_code == 204
    assert api.delete(f"{path}/{world.users['paralegal_a']}", headers=headers).status_code == 404


def test_matter_audit_trail(api, world, upload_as):
    headers = world.headers("lawyer_a")
    api.patch(f"/matters/{world.matter_a}/status", headers=headers, json={"status": "pending"})
    upload_as("lawyer_a")

    response = api.get(f"/audit/matter/{world.matter_a}", headers=headers)

    assert response.status_code == 200
    actions = {entry["action"] for entry in response.json()["entries"]}
    assert {"matter_status_change", "document_upload"} <= actions


def test_client_users_cannot_use_staff_endpoints(api, world):
    assert api.get("/matters", headers=world.headers("client_a")).status_code == 403
    assert api.get("/dashboard/stats", headers=world.headers("client_a")).status_code == 403
