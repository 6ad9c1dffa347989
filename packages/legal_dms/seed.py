"""Development seed data: system roles and a demo firm."""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from .clearance import recommended_level
from .models import Client, Firm, Matter, Role, User
from .policy import ROLE_DESCRIPTIONS, ROLE_HIERARCHY, ROLE_PERMISSIONS
from .schema.enums import MatterStatus

__all__ = ["SeedResult", "seed_roles", "seed_demo"]

logger = structlog.get_logger(__name__)

DEMO_FIRM_NAME = "Demo Law LLP"


@dataclass(slots=True)
class SeedResult:
    roles_created: int
    firm: Firm
    users: dict[str, User]
    client: Client
    matter: Matter


def seed_roles(session: Session) -> int:
    """Insert missing system roles. Returns how many were created."""

    existing = set(session.scalars(select(Role.name)))
    created = 0
    for name, permissions in ROLE_PERMISSIONS.items():
        if name in existing:
            continue
        session.add(
            Role(
                name=name,
                description=ROLE_DESCRIPTIONS.get(name),
                permissions=list(permissions),
                hierarchy_level=ROLE_HIERARCHY.get(name, 0),
                is_system_role=True,
            )
        )
        created += 1
    session.flush()
    return created


def _ensure_user(
    session: Session,
    email: str,
    display_name: str,
    roles: list[str],
    firm: Firm | None,
    attributes: dict | None = None,
) -> User:
    user = session.scalars(select(User).where(User.email == email)).first()
    if user is not None:
        return user
    user = User(
        firm_id=firm.id if firm is not None else None,
        email=email,
        display_name=display_name,
        roles=roles,
        attributes=attributes or {},
        clearance_level=recommended_level(roles),
    )
    session.add(user)
    session.flush()
    return user


def seed_demo(session: Session, *, domain: str = "demo.law") -> SeedResult:
    """Create a demo firm with one user per role, a client and a matter.

    Running it twice reuses the rows created the first time.
    """

    roles_created = seed_roles(session)

    firm = session.scalars(select(Firm).where(Firm.name == DEMO_FIRM_NAME)).first()
    if firm is None:
        firm = Firm(name=DEMO_FIRM_NAME, external_ref="DEMO", settings={})
        session.add(firm)
        session.flush()

    client = session.scalars(
        select(Client).where(Client.firm_id == firm.id, Client.external_ref == "CL-0001")
    ).first()
    if client is None:
        client = Client(
            firm_id=firm.id,
            name="Acme Holdings",
            external_ref="CL-0001",
            contact_email=f"legal@acme.{domain}",
            client_type="corporate",
        )
        session.add(client)
        session.flush()

    users = {
        "super_admin": _ensure_user(session, f"root@{domain}", "Platform Admin", ["super_admin"], None),
        "firm_admin": _ensure_user(session, f"admin@{domain}", "Firm Admin", ["firm_admin"], firm),
        "legal_manager": _ensure_user(
            session, f"manager@{domain}", "Legal Manager", ["legal_manager"], firm
        ),
        "legal_professional": _ensure_user(
            session, f"lawyer@{domain}", "Associate Lawyer", ["legal_professional"], firm
        ),
        "paralegal": _ensure_user(session, f"paralegal@{domain}", "Paralegal", ["paralegal"], firm),
        "client_user": _ensure_user(
            session,
            f"client@{domain}",
            "Acme Counsel",
            ["client_user"],
            firm,
            attributes={"client_ids": [str(client.id)]},
        ),
    }

    matter = session.scalars(
        select(Matter).where(Matter.firm_id == firm.id, Matter.client_id == client.id)
    ).first()
    if matter is None:
        matter = Matter(
            firm_id=firm.id,
            client_id=client.id,
            title="Acme v. Globex",
            description="Demo litigation matter",
            status=MatterStatus.ACTIVE,
            security_class=2,
            created_by=users["firm_admin"].id,
        )
        session.add(matter)
        session.flush()

    session.commit()
    logger.info(
        "demo_seeded",
        firm_id=str(firm.id),
        roles_created=roles_created,
        users=len(users),
    )
    return SeedResult(
        roles_created=roles_created, firm=firm, users=users, client=client, matter=matter
    )
