"""Shared fixtures: in-memory SQLite app, fake object storage and seed data."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from packages.legal_dms.api import create_app
from packages.legal_dms.clearance import recommended_level
from packages.legal_dms.models import Client, Firm, Matter, User
from packages.legal_dms.policy import Principal, permissions_for_roles
from packages.legal_dms.seed import seed_roles
from packages.legal_dms.settings import DmsSettings
from packages.legal_dms.storage import StoredObject


class FakeStorage:
    """In-memory stand-in for :class:`ObjectStorageClient`."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str | None] = {}
        self.healthy = True

    def upload_file(self, file_content, key, content_type=None, metadata=None) -> StoredObject:
        data = file_content if isinstance(file_content, bytes) else file_content.read()
        self.objects[key] = data
        self.content_types[key] = content_type
        checksum = hashlib.sha256(data).hexdigest()
        return StoredObject(key=key, bucket="test", etag=checksum[:32], size=len(data), checksum=checksum)

    def download_file(self, key: str) -> bytes:
        return self.objects[key]

    def delete_file(self, key: str) -> None:
        self.objects.pop(key, None)

    def generate_presigned_download_url(self, key, expiry=None, filename=None) -> str:
        return f"https://storage.test/{key}?expires={expiry}"

    def health_check(self) -> bool:
        return self.healthy


@dataclass
class World:
    """IDs of the seeded firms, users, client and matter."""

    firm_a: uuid.UUID
    firm_b: uuid.UUID
    client_a: uuid.UUID
    matter_a: uuid.UUID
    users: dict[str, uuid.UUID] = field(default_factory=dict)

    def headers(self, name: str) -> dict[str, str]:
        return {"X-User-ID": str(self.users[name])}


@pytest.fixture()
def settings() -> DmsSettings:
    # the test client stands in for a single reverse proxy
    return DmsSettings(database_url="sqlite+pysqlite:///:memory:", trusted_proxy_count=1)


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def app(settings: DmsSettings, storage: FakeStorage):
    application = create_app(settings, storage=storage)
    application.state.database.create_all()
    yield application
    application.state.database.engine.dispose()


@pytest.fixture()
def session(app) -> Iterator[Session]:
    db_session = app.state.database.session()
    yield db_session
    db_session.close()


@pytest.fixture()
def api(app) -> TestClient:
    return TestClient(app)


def _user(session: Session, firm: Firm | None, email: str, roles: list[str], **extra) -> User:
    user = User(
        firm_id=firm.id if firm is not None else None,
        email=email,
        display_name=email.split("@")[0].title(),
        roles=roles,
        attributes=extra.pop("attributes", {}),
        clearance_level=extra.pop("clearance_level", recommended_level(roles)),
    )
    session.add(user)
    session.flush()
    return user


@pytest.fixture()
def world(session: Session) -> World:
    seed_roles(session)
    firm_a = Firm(name="Alpha Partners", external_ref="ALPHA", settings={})
    firm_b = Firm(name="Beta Legal", external_ref="BETA", settings={})
    session.add_all([firm_a, firm_b])
    session.flush()

    client = Client(firm_id=firm_a.id, name="Acme Holdings", external_ref="CL-1")
    session.add(client)
    session.flush()

    users = {
        "root": _user(session, None, "root@platform.test", ["super_admin"]),
        "admin_a": _user(session, firm_a, "admin@alpha.test", ["firm_admin"]),
        "manager_a": _user(session, firm_a, "manager@alpha.test", ["legal_manager"]),
        "lawyer_a": _user(session, firm_a, "lawyer@alpha.test", ["legal_professional"]),
        "paralegal_a": _user(
            session, firm_a, "paralegal@alpha.test", ["paralegal"], clearance_level=2
        ),
        "support_a": _user(session, firm_a, "support@alpha.test", ["support_staff"]),
        "client_a": _user(
            session,
            firm_a,
            "counsel@acme.test",
            ["client_user"],
            attributes={"client_ids": [str(client.id)]},
        ),
        "admin_b": _user(session, firm_b, "admin@beta.test", ["firm_admin"]),
        "lawyer_b": _user(session, firm_b, "lawyer@beta.test", ["legal_professional"]),
    }

    matter = Matter(
        firm_id=firm_a.id,
        client_id=client.id,
        title="Acme v. Globex",
        description="Breach of supply contract",
        security_class=2,
        created_by=users["admin_a"].id,
    )
    session.add(matter)
    session.commit()

    return World(
        firm_a=firm_a.id,
        firm_b=firm_b.id,
        client_a=client.id,
        matter_a=matter.id,
        users={name: user.id for name, user in users.items()},
    )


def _principal(session: Session, user_id: uuid.UUID, ip_address: str | None = None) -> Principal:
    user = session.get(User, user_id)
    roles = tuple(user.roles)
    client_ids = tuple(uuid.UUID(raw) for raw in (user.attributes or {}).get("client_ids", []))
    return Principal(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        firm_id=user.firm_id,
        roles=roles,
        permissions=permissions_for_roles(roles),
        clearance_level=user.clearance_level,
        client_ids=client_ids,
        ip_address=ip_address,
        attributes=dict(user.attributes or {}),
    )


def _upload(api: TestClient, world: World, user: str, matter_id=None, **fields):
    path = fields.pop("path", "/documents")
    filename = fields.pop("filename", "contract.txt")
    content = fields.pop("content", b"This agreement is made between Acme and Globex.")
    content_type = fields.pop("content_type", "text/plain")
    data = {"matter_id": str(matter_id or world.matter_a)}
    data.update({key: str(value) for key, value in fields.items()})
    return api.post(
        path,
        headers=world.headers(user),
        data=data,
        files={"file": (filename, content, content_type)},
    )


@pytest.fixture()
def principal_for(session: Session, world: World):
    """Build a :class:`Principal` for a seeded user name."""

    def build(name: str, ip_address: str | None = None) -> Principal:
        return _principal(session, world.users[name], ip_address=ip_address)

    return build


@pytest.fixture()
def upload_as(api: TestClient, world: World):
    """Multipart upload through ``POST /documents`` (or ``path=``)."""

    def send(user: str, matter_id=None, **fields):
        return _upload(api, world, user, matter_id, **fields)

    return send
