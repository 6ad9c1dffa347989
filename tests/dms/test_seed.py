from sqlalchemy import func, select

from packages.legal_dms.models import Firm, Role, User
from packages.legal_dms.seed import seed_demo, seed_roles


def test_seed_roles_is_idempotent(session):
    assert seed_roles(session) == 7
    assert seed_roles(session) == 0

    levels = dict(session.execute(select(Role.name, Role.hierarchy_level)).all())
    assert levels["super_admin"] == 100
    assert levels["client_user"] == 10


def test_seed_demo(session):
    result = seed_demo(session, domain="demo.test")

    assert result.firm.name == "Demo Law LLP"
    assert result.users["super_admin"].firm_id is None
    assert result.users["paralegal"].clearance_level == 4
    assert result.users["client_user"].attributes == {"client_ids": [str(result.client.id)]}
    assert result.matter.client_id == result.client.id

    again = seed_demo(session, domain="demo.test")
    assert again.roles_created == 0
    assert again.firm.id == result.firm.id
    assert session.execute(select(func.count()).select_from(Firm)).scalar_one() == 1
    assert session.execute(select(func.count()).select_from(User)).scalar_one() == 6


def test_seeded_users_can_call_the_api(api, session):
    result = seed_demo(session)

    response = api.get("/matters", headers={"X-User-ID": str(result.users["legal_professional"].id)})

    assert response.status_code == 200
    assert [matter["title"] for matter in response.json()["matters"]] == ["Acme v. Globex"]
