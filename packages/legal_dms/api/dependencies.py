"""Request-scoped dependencies: session, services and the current principal."""

from __future__ import annotations

import uuid
from typing import Iterator

import structlog
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Role, User
from ..policy import Principal, permissions_for_roles
from ..services import (
    AdminService,
    ClientPortalService,
    ClientService,
    DashboardService,
    DocumentService,
    FirmService,
    MatterService,
    MatterSharingService,
    RetentionService,
    SystemSettingsService,
)
from ..settings import DmsDatabase, DmsSettings

__all__ = [
    "get_settings",
    "get_session",
    "get_storage",
    "get_current_user",
    "get_firm_service",
    "get_admin_service",
    "get_retention_service",
    "get_client_service",
    "get_matter_service",
    "get_document_service",
    "get_sharing_service",
    "get_dashboard_service",
    "get_portal_service",
    "get_system_settings_service",
    "principal_from_user",
    "client_ip",
]

logger = structlog.get_logger(__name__)


def get_settings(request: Request) -> DmsSettings:
    return request.app.state.settings


def get_storage(request: Request):
    return request.app.state.storage


def get_session(request: Request) -> Iterator[Session]:
    database: DmsDatabase = request.app.state.database
    session = database.session()
    try:
        yield session
    finally:
        session.close()


# ========================================================================
# 인증
# ========================================================================


def _client_ids(attributes: dict) -> tuple[uuid.UUID, ...]:
    ids = []
    for raw in attributes.get("client_ids") or []:
        try:
            ids.append(uuid.UUID(str(raw)))
        except ValueError:
            logger.warning("invalid_client_id_attribute", value=str(raw))
    return tuple(ids)


def principal_from_user(
    session: Session,
    user: User,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> Principal:
    """Build a :class:`Principal` with permissions from the ``roles`` table."""

    roles = tuple(user.roles or ())
    overrides = {
        role.name: role.permissions or []
        for role in session.execute(
            select(Role).where(Role.name.in_(roles), Role.is_active.is_(True))
        ).scalars()
    }
    attributes = dict(user.attributes or {})
    return Principal(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        firm_id=user.firm_id,
        roles=roles,
        permissions=permissions_for_roles(roles, overrides),
        clearance_level=user.clearance_level,
        client_ids=_client_ids(attributes),
        ip_address=ip_address,
        user_agent=user_agent,
        attributes=attributes,
    )


def client_ip(request: Request, trusted_proxy_count: int = 0) -> str | None:
    """Caller address, skipping ``trusted_proxy_count`` proxies from the right.

    Proxies append to ``X-Forwarded-For``, so only the entries they added are
    trusted. With no trusted proxies the header is ignored.
    """

    peer = request.client.host if request.client else None
    forwarded = request.headers.get("X-Forwarded-For")
    if trusted_proxy_count <= 0 or not forwarded:
        return peer
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    if peer:
        hops.append(peer)
    if not hops:
        return None
    return hops[max(len(hops) - 1 - trusted_proxy_count, 0)]


def get_current_user(
    request: Request,
    session: Session = Depends(get_session),
    settings: DmsSettings = Depends(get_settings),
) -> Principal:
    """Resolve ``X-User-ID`` (set by the identity proxy) to a principal."""

    raw_user_id = request.headers.get("X-User-ID")
    if not raw_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        user_id = uuid.UUID(raw_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user identifier"
        ) from None
    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive user"
        )
    ip_address = client_ip(request, settings.trusted_proxy_count)
    return principal_from_user(
        session, user, ip_address=ip_address, user_agent=request.headers.get("User-Agent")
    )


# ========================================================================
# 서비스
# ========================================================================


def get_firm_service(
    session: Session = Depends(get_session), settings: DmsSettings = Depends(get_settings)
) -> FirmService:
    return FirmService(session=session, settings=settings)


def get_admin_service(
    session: Session = Depends(get_session), settings: DmsSettings = Depends(get_settings)
) -> AdminService:
    return AdminService(session=session, settings=settings)


def get_retention_service(
    session: Session = Depends(get_session), settings: DmsSettings = Depends(get_settings)
) -> RetentionService:
    return RetentionService(session=session, settings=settings)


def get_client_service(
    session: Session = Depends(get_session), settings: DmsSettings = Depends(get_settings)
) -> ClientService:
    return ClientService(session=session, settings=settings)


def get_matter_service(
    session: Session = Depends(get_session),
    settings: DmsSettings = Depends(get_settings),
    storage=Depends(get_storage),
) -> MatterService:
    return MatterService(session=session, settings=settings, storage=storage)


def get_document_service(
    session: Session = Depends(get_session),
    settings: DmsSettings = Depends(get_settings),
    storage=Depends(get_storage),
) -> DocumentService:
    return DocumentService(session=session, settings=settings, storage=storage)


def get_sharing_service(
    session: Session = Depends(get_session),
    settings: DmsSettings = Depends(get_settings),
    storage=Depends(get_storage),
) -> MatterSharingService:
    return MatterSharingService(session=session, settings=settings, storage=storage)


def get_dashboard_service(
    session: Session = Depends(get_session), settings: DmsSettings = Depends(get_settings)
) -> DashboardService:
    return DashboardService(session=session, settings=settings)


def get_portal_service(
    session: Session = Depends(get_session),
    settings: DmsSettings = Depends(get_settings),
    storage=Depends(get_storage),
) -> ClientPortalService:
    return ClientPortalService(session=session, settings=settings, storage=storage)


def get_system_settings_service(
    session: Session = Depends(get_session), settings: DmsSettings = Depends(get_settings)
) -> SystemSettingsService:
    return SystemSettingsService(session=session, settings=settings)
