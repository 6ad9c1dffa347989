"""User, role and team administration."""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.exc import NoResultFound

from .. import schemas
from ..clearance import (
    clearance_range,
    describe_level,
    recommended_level,
    validate_level,
)
from ..models import AuditLog, Document, DocumentMeta, Firm, Matter, Role, Team, User
from ..policy import ROLE_PERMISSIONS, Principal
from ..schema.enums import AuditRiskLevel, MatterStatus
from .base import ConflictError, ServiceBase

__all__ = ["AdminService"]

logger = structlog.get_logger(__name__)


class AdminService(ServiceBase):
    """사용자/역할/팀 관리."""

    # ========================================================================
    # 내부 헬퍼
    # ========================================================================

    def _scope_firm(self, principal: Principal, firm_id: Optional[uuid.UUID]) -> Optional[uuid.UUID]:
        """Firm the caller may administer; super_admin may pick any (or all)."""

        if principal.is_super_admin:
            return firm_id
        own = self.require_firm(principal)
        if firm_id is not None and firm_id != own:
            raise PermissionError("Cannot administer users of another firm")
        return own

    def _get_user(self, user_id: uuid.UUID, principal: Principal) -> User:
        user = self.get_or_404(User, user_id, "User")
        if user.firm_id is not None:
            self.check_firm_access(principal, user.firm_id)
        elif not principal.is_super_admin:
            raise PermissionError("Access denied to platform users")
        return user

    def _validate_roles(self, roles: Iterable[str], principal: Principal) -> list[str]:
        roles = list(dict.fromkeys(roles))
        known = set(ROLE_PERMISSIONS) | set(
            self.session.execute(select(Role.name).where(Role.is_active.is_(True))).scalars()
        )
        unknown = [role for role in roles if role not in known]
        if unknown:
            raise ValueError(f"Unknown roles: {', '.join(unknown)}")
        if "super_admin" in roles and not principal.is_super_admin:
            raise PermissionError("Only super_admin can grant the super_admin role")
        return roles

    @staticmethod
    def _apply_roles(user: User, roles: list[str]) -> None:
        """Set roles, moving the clearance level to the recommendation when out of range."""
        if not roles:
            raise ValueError("A user must keep at least one role")
        user.roles = roles
        if not validate_level(user.clearance_level, roles).valid:
            user.clearance_level = recommended_level(roles)

    def _ensure_email_free(self, email: str, exclude: Optional[uuid.UUID] = None) -> None:
        stmt = select(User.id).where(User.email == email)
        if exclude is not None:
            stmt = stmt.where(User.id != exclude)
        if self.session.execute(stmt).first():
            raise ConflictError(f"User with email {email} already exists")

    @staticmethod
    def _apply_client_ids(user: User, client_ids: Iterable[uuid.UUID]) -> None:
        attributes = dict(user.attributes or {})
        attributes["client_ids"] = [str(client_id) for client_id in client_ids]
        user.attributes = attributes

    # ========================================================================
    # 사용자
    # ========================================================================

    def list_users(
        self,
        principal: Principal,
        firm_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[User], int]:
        self.authorize(principal, "read", "user")
        scoped = self._scope_firm(principal, firm_id)
        stmt = select(User)
        if scoped is not None:
            stmt = stmt.where(User.firm_id == scoped)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(User.email.ilike(pattern), User.display_name.ilike(pattern)))
        if role:
            # roles is a JSON list; match the quoted element in its text form
            stmt = stmt.where(cast(User.roles, String).like(f'%"{role}"%'))
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
        return self.paginate(stmt.order_by(User.display_name), page, limit)

    def get_user(self, user_id: uuid.UUID, principal: Principal) -> User:
        self.authorize(principal, "read", "user")
        return self._get_user(user_id, principal)

    def create_user(self, request: schemas.UserCreateRequest, principal: Principal) -> User:
        self.authorize(principal, "write", "user")
        firm_id = self._scope_firm(principal, request.firm_id)
        if firm_id is not None:
            firm = self.session.get(Firm, firm_id)
            if firm is None or firm.deleted_at is not None:
                raise NoResultFound("Firm not found")

        roles = self._validate_roles(request.roles, principal)
        email = request.email.lower()
        self._ensure_email_free(email)

        level = request.clearance_level or recommended_level(roles)
        check = validate_level(level, roles)
        if not check.valid:
            raise ValueError(check.message)

        user = User(
            firm_id=firm_id,
            email=email,
            display_name=request.display_name,
            roles=roles,
            attributes=dict(request.attributes),
            clearance_level=level,
        )
        if request.client_ids:
            self._apply_client_ids(user, request.client_ids)
        self.session.add(user)
        self.session.flush()
        self.audit.log(
            principal,
            "user_create",
            "user",
            user.id,
            {"email": email, "roles": roles, "clearance_level": level},
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        logger.info("user_created", user_id=str(user.id), firm_id=str(firm_id))
        return user

    def update_user(
        self, user_id: uuid.UUID, request: schemas.UserUpdateRequest, principal: Principal
    ) -> User:
        self.authorize(principal, "write", "user")
        user = self._get_user(user_id, principal)
        changes = request.model_dump(exclude_unset=True)
        if "email" in changes and changes["email"]:
            email = changes["email"].lower()
            self._ensure_email_free(email, exclude=user.id)
            user.email = email
        if request.display_name is not None:
            user.display_name = request.display_name
        if request.attributes is not None:
            preserved = (user.attributes or {}).get("client_ids")
            attributes = dict(request.attributes)
            if preserved is not None and "client_ids" not in attributes:
                attributes["client_ids"] = preserved
            user.attributes = attributes
        if request.client_ids is not None:
            self._apply_client_ids(user, request.client_ids)
        if request.is_active is not None:
            if user.id == principal.id and not request.is_active:
                raise ValueError("Cannot deactivate yourself")
            user.is_active = request.is_active
        self.audit.log(
            principal, "user_update", "user", user.id, {"fields": sorted(changes)}
        )
        self.session.commit()
        return user

    def set_active(self, user_id: uuid.UUID, active: bool, principal: Principal) -> User:
        self.authorize(principal, "write", "user")
        user = self._get_user(user_id, principal)
        if user.id == principal.id and not active:
            raise ValueError("Cannot deactivate yourself")
        user.is_active = active
        self.audit.log(
            principal,
            "user_activate" if active else "user_deactivate",
            "user",
            user.id,
            risk_level=AuditRiskLevel.MEDIUM,
        )
        self.session.commit()
        return user

    def update_roles(
        self, user_id: uuid.UUID, roles: list[str], principal: Principal
    ) -> User:
        """Replace roles; clearance is clamped into the new roles' range."""
        self.authorize(principal, "write", "user")
        user = self._get_user(user_id, principal)
        roles = self._validate_roles(roles, principal)
        previous = list(user.roles or [])
        self._apply_roles(user, roles)
        self.audit.log(
            principal,
            "user_roles_update",
            "user",
            user.id,
            {"previous": previous, "roles": roles},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        return user

    def set_clearance(self, user_id: uuid.UUID, level: int, principal: Principal) -> User:
        self.authorize(principal, "write", "user")
        user = self._get_user(user_id, principal)
        check = validate_level(level, user.roles or [])
        if not check.valid:
            raise ValueError(check.message)
        if not principal.is_super_admin and level > principal.clearance_level:
            raise PermissionError("Cannot grant a clearance above your own")
        previous = user.clearance_level
        user.clearance_level = level
        self.audit.log(
            principal,
            "user_clearance_update",
            "user",
            user.id,
            {"previous": previous, "clearance_level": level},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        return user

    def clearance_info(self, user_id: uuid.UUID, principal: Principal) -> schemas.ClearanceInfoResponse:
        if user_id == principal.id:
            user = self.get_or_404(User, user_id, "User")
        else:
            self.authorize(principal, "read", "user")
            user = self._get_user(user_id, principal)
        low, high = clearance_range(user.roles or [])
        return schemas.ClearanceInfoResponse(
            user_id=user.id,
            clearance_level=user.clearance_level,
            label=describe_level(user.clearance_level),
            recommended_level=recommended_level(user.roles or []),
            min_level=low,
            max_level=high,
        )

    def bulk_operation(
        self, request: schemas.BulkUserOperationRequest, principal: Principal
    ) -> schemas.BulkOperationResponse:
        """Apply one operation to many users; failures are reported, not raised."""
        self.authorize(principal, "write", "user")
        if request.operation in {"assign_role", "remove_role"}:
            if not request.role:
                raise ValueError("role is required for role operations")
            self._validate_roles([request.role], principal)

        processed = 0
        failed: list[dict[str, str]] = []
        for user_id in request.user_ids:
            try:
                user = self._get_user(user_id, principal)
            except (NoResultFound, PermissionError) as exc:
                failed.append({"user_id": str(user_id), "error": str(exc.args[0] if exc.args else exc)})
                continue
            if request.operation == "activate":
                user.is_active = True
            elif request.operation == "deactivate":
                if user.id == principal.id:
                    failed.append({"user_id": str(user_id), "error": "Cannot deactivate yourself"})
                    continue
                user.is_active = False
            else:
                current = list(user.roles or [])
                if request.operation == "assign_role":
                    roles = current if request.role in current else [*current, request.role]
                else:
                    roles = [role for role in current if role != request.role]
                try:
                    self._apply_roles(user, roles)
                except ValueError as exc:
                    failed.append({"user_id": str(user_id), "error": str(exc)})
                    continue
            processed += 1

        self.audit.log(
            principal,
            "user_bulk_operation",
            "user",
            None,
            {"operation": request.operation, "processed": processed, "failed": len(failed)},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        return schemas.BulkOperationResponse(processed=processed, failed=failed)

    # ========================================================================
    # 역할 / 팀
    # ========================================================================

    def list_roles(self, principal: Principal) -> list[Role]:
        self.authorize(principal, "read", "role")
        stmt = select(Role).where(Role.is_active.is_(True)).order_by(Role.hierarchy_level.desc())
        return list(self.session.execute(stmt).scalars())

    def list_teams(self, principal: Principal, firm_id: Optional[uuid.UUID] = None) -> list[Team]:
        self.authorize(principal, "read", "team")
        scoped = self._scope_firm(principal, firm_id)
        stmt = select(Team).order_by(Team.name)
        if scoped is not None:
            stmt = stmt.where(Team.firm_id == scoped)
        return list(self.session.execute(stmt).scalars())

    def create_team(self, request: schemas.TeamCreateRequest, principal: Principal) -> Team:
        self.authorize(principal, "write", "team")
        firm_id = self.require_firm(principal)
        members = []
        for member_id in dict.fromkeys(request.member_ids):
            member = self.get_or_404(User, member_id, "User")
            if member.firm_id != firm_id:
                raise ValueError("Team members must belong to the same firm")
            members.append(member)
        team = Team(firm_id=firm_id, name=request.name, description=request.description)
        team.members = members
        self.session.add(team)
        self.session.flush()
        self.audit.log(
            principal, "team_create", "team", team.id, {"members": len(members)}
        )
        self.session.commit()
        return team

    # ========================================================================
    # 감사 로그
    # ========================================================================

    def list_audit_logs(
        self,
        principal: Principal,
        firm_id: Optional[uuid.UUID] = None,
        **filters,
    ) -> tuple[list[AuditLog], int]:
        self.authorize(principal, "read", "audit")
        scoped = self._scope_firm(principal, firm_id)
        return self.audit.list_logs(scoped, **filters)

    # ========================================================================
    # 시스템 통계
    # ========================================================================

    def system_stats(self, principal: Principal) -> schemas.SystemStatsResponse:
        """User, document, matter and storage counts; platform-wide for super_admin."""

        self.authorize(principal, "read", "system_stats")
        firm_id = None if principal.is_super_admin else self.require_firm(principal)

        def scoped(stmt, column):
            return stmt if firm_id is None else stmt.where(column == firm_id)

        def count(model, *conditions) -> int:
            stmt = scoped(select(func.count()).select_from(model), model.firm_id)
            return self.session.execute(stmt.where(*conditions)).scalar_one()

        by_role: dict[str, int] = {}
        for roles in self.session.execute(scoped(select(User.roles), User.firm_id)).scalars():
            for role in roles or []:
                by_role[role] = by_role.get(role, 0) + 1

        live = Document.is_deleted.is_(False)
        confidential = self.session.execute(
            scoped(
                select(func.count())
                .select_from(Document)
                .join(DocumentMeta, DocumentMeta.document_id == Document.id)
                .where(live, DocumentMeta.confidential.is_(True)),
                Document.firm_id,
            )
        ).scalar_one()
        total_size, average_size = self.session.execute(
            scoped(
                select(
                    func.coalesce(func.sum(Document.size_bytes), 0),
                    func.coalesce(func.avg(Document.size_bytes), 0),
                ).where(live),
                Document.firm_id,
            )
        ).one()

        by_status = {
            status.value: total
            for status, total in self.session.execute(
                scoped(select(Matter.status, func.count()), Matter.firm_id).group_by(Matter.status)
            ).all()
        }

        return schemas.SystemStatsResponse(
            users={
                "total": count(User),
                "active": count(User, User.is_active.is_(True)),
                "by_role": by_role,
            },
            documents={
                "total": count(Document, live),
                "confidential": confidential,
                "under_legal_hold": count(Document, live, Document.legal_hold.is_(True)),
                "soft_deleted": count(Document, Document.is_deleted.is_(True)),
            },
            matters={
                "total": count(Matter),
                "active": by_status.get(MatterStatus.ACTIVE.value, 0),
                "by_status": by_status,
            },
            storage={
                "total_size_bytes": int(total_size),
                "average_document_size": int(round(float(average_size))),
            },
        )
