"""Platform and firm administration endpoints."""

from __future__ import annotations

import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ... import schemas
from ...policy import Principal
from ...schema.enums import AuditRiskLevel
from ...services import AdminService, FirmService, RetentionService, SystemSettingsService
from ..dependencies import (
    get_admin_service,
    get_current_user,
    get_firm_service,
    get_retention_service,
    get_system_settings_service,
)
from ..responses import team_response

router = APIRouter(prefix="/admin", tags=["admin"])


# ========================================================================
# 로펌
# ========================================================================


@router.post("/firms", response_model=schemas.FirmResponse, status_code=201)
def create_firm(
    request: schemas.FirmCreateRequest,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.FirmResponse:
    return schemas.FirmResponse.model_validate(service.create_firm(request, principal))


@router.post("/firms/onboard", response_model=schemas.FirmOnboardResponse, status_code=201)
def onboard_firm(
    request: schemas.FirmOnboardRequest,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.FirmOnboardResponse:
    """로펌 + 첫 관리자 생성."""
    firm, admin = service.onboard_firm(request, principal)
    return schemas.FirmOnboardResponse(
        firm=schemas.FirmResponse.model_validate(firm),
        admin=schemas.UserResponse.model_validate(admin),
    )


@router.get("/firms", response_model=schemas.FirmListResponse)
def list_firms(
    search: Optional[str] = Query(None),
    include_deleted: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.FirmListResponse:
    firms, total = service.list_firms(
        principal, search=search, include_deleted=include_deleted, page=page, limit=limit
    )
    return schemas.FirmListResponse(
        firms=[schemas.FirmResponse.model_validate(firm) for firm in firms],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/firms/{firm_id}", response_model=schemas.FirmResponse)
def get_firm(
    firm_id: uuid.UUID,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.FirmResponse:
    return schemas.FirmResponse.model_validate(service.get_firm(firm_id, principal))


@router.patch("/firms/{firm_id}", response_model=schemas.FirmResponse)
def update_firm(
    firm_id: uuid.UUID,
    request: schemas.FirmUpdateRequest,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.FirmResponse:
    return schemas.FirmResponse.model_validate(service.update_firm(firm_id, request, principal))


@router.delete("/firms/{firm_id}", status_code=204)
def delete_firm(
    firm_id: uuid.UUID,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.delete_firm(firm_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/firms/{firm_id}/settings", response_model=dict[str, Any])
def get_firm_settings(
    firm_id: uuid.UUID,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> dict[str, Any]:
    return service.get_settings(firm_id, principal)


@router.patch("/firms/{firm_id}/settings", response_model=dict[str, Any])
def update_firm_settings(
    firm_id: uuid.UUID,
    request: schemas.FirmSettingsUpdateRequest,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> dict[str, Any]:
    return service.update_settings(firm_id, request, principal)


@router.get("/firms/{firm_id}/stats", response_model=schemas.FirmStatsResponse)
def firm_stats(
    firm_id: uuid.UUID,
    service: FirmService = Depends(get_firm_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.FirmStatsResponse:
    return service.get_stats(firm_id, principal)


# ========================================================================
# 사용자
# ========================================================================


@router.get("/users", response_model=schemas.UserListResponse)
def list_users(
    firm_id: Optional[uuid.UUID] = Query(None),
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserListResponse:
    users, total = service.list_users(
        principal,
        firm_id=firm_id,
        search=search,
        role=role,
        is_active=is_active,
        page=page,
        limit=limit,
    )
    return schemas.UserListResponse(
        users=[schemas.UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/users", response_model=schemas.UserResponse, status_code=201)
def create_user(
    request: schemas.UserCreateRequest,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(service.create_user(request, principal))


@router.post("/users/bulk", response_model=schemas.BulkOperationResponse)
def bulk_users(
    request: schemas.BulkUserOperationRequest,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.BulkOperationResponse:
    return service.bulk_operation(request, principal)


@router.get("/users/{user_id}", response_model=schemas.UserResponse)
def get_user(
    user_id: uuid.UUID,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(service.get_user(user_id, principal))


@router.patch("/users/{user_id}", response_model=schemas.UserResponse)
def update_user(
    user_id: uuid.UUID,
    request: schemas.UserUpdateRequest,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(service.update_user(user_id, request, principal))


@router.post("/users/{user_id}/activate", response_model=schemas.UserResponse)
def activate_user(
    user_id: uuid.UUID,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(service.set_active(user_id, True, principal))


@router.post("/users/{user_id}/deactivate", response_model=schemas.UserResponse)
def deactivate_user(
    user_id: uuid.UUID,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(service.set_active(user_id, False, principal))


@router.put("/users/{user_id}/roles", response_model=schemas.UserResponse)
def update_user_roles(
    user_id: uuid.UUID,
    request: schemas.UserRolesUpdateRequest,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(
        service.update_roles(user_id, request.roles, principal)
    )


@router.get("/users/{user_id}/clearance", response_model=schemas.ClearanceInfoResponse)
def get_user_clearance(
    user_id: uuid.UUID,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ClearanceInfoResponse:
    return service.clearance_info(user_id, principal)


@router.put("/users/{user_id}/clearance", response_model=schemas.UserResponse)
def set_user_clearance(
    user_id: uuid.UUID,
    request: schemas.ClearanceUpdateRequest,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.UserResponse:
    return schemas.UserResponse.model_validate(
        service.set_clearance(user_id, request.clearance_level, principal)
    )


# ========================================================================
# 역할 / 팀
# ========================================================================


@router.get("/roles", response_model=list[schemas.RoleResponse])
def list_roles(
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.RoleResponse]:
    return [schemas.RoleResponse.model_validate(role) for role in service.list_roles(principal)]


@router.get("/teams", response_model=list[schemas.TeamResponse])
def list_teams(
    firm_id: Optional[uuid.UUID] = Query(None),
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.TeamResponse]:
    return [team_response(team) for team in service.list_teams(principal, firm_id=firm_id)]


@router.post("/teams", response_model=schemas.TeamResponse, status_code=201)
def create_team(
    request: schemas.TeamCreateRequest,
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.TeamResponse:
    return team_response(service.create_team(request, principal))


# ========================================================================
# 보존 정책 클래스
# ========================================================================


@router.get("/retention-classes", response_model=list[schemas.RetentionClassResponse])
def list_retention_classes(
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.RetentionClassResponse]:
    return [
        schemas.RetentionClassResponse.model_validate(item)
        for item in service.list_classes(principal)
    ]


@router.post(
    "/retention-classes", response_model=schemas.RetentionClassResponse, status_code=201
)
def create_retention_class(
    request: schemas.RetentionClassCreateRequest,
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.RetentionClassResponse:
    return schemas.RetentionClassResponse.model_validate(service.create_class(request, principal))


@router.get("/retention-classes/{class_id}", response_model=schemas.RetentionClassResponse)
def get_retention_class(
    class_id: uuid.UUID,
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.RetentionClassResponse:
    return schemas.RetentionClassResponse.model_validate(service.get_class(class_id, principal))


@router.patch("/retention-classes/{class_id}", response_model=schemas.RetentionClassResponse)
def update_retention_class(
    class_id: uuid.UUID,
    request: schemas.RetentionClassUpdateRequest,
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.RetentionClassResponse:
    return schemas.RetentionClassResponse.model_validate(
        service.update_class(class_id, request, principal)
    )


@router.delete("/retention-classes/{class_id}", status_code=204)
def delete_retention_class(
    class_id: uuid.UUID,
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.delete_class(class_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========================================================================
# 감사 로그
# ========================================================================


@router.get("/audit-logs", response_model=schemas.AuditLogListResponse)
def list_audit_logs(
    firm_id: Optional[uuid.UUID] = Query(None),
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    risk_level: Optional[AuditRiskLevel] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.AuditLogListResponse:
    logs, total = service.list_audit_logs(
        principal,
        firm_id=firm_id,
        action=action,
        resource_type=resource_type,
        user_id=user_id,
        risk_level=risk_level,
        page=page,
        limit=limit,
    )
    return schemas.AuditLogListResponse(
        logs=[schemas.AuditLogEntry.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        limit=limit,
    )


# ========================================================================
# 시스템 통계 / 설정
# ========================================================================


@router.get("/system-stats", response_model=schemas.SystemStatsResponse)
def system_stats(
    service: AdminService = Depends(get_admin_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.SystemStatsResponse:
    return service.system_stats(principal)


@router.get("/system-settings", response_model=schemas.SystemSettingsResponse)
def get_system_settings(
    service: SystemSettingsService = Depends(get_system_settings_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.SystemSettingsResponse:
    return service.get_settings(principal)


@router.patch("/system-settings", response_model=schemas.SystemSettingsResponse)
def update_system_settings(
    request: schemas.SystemSettingsUpdateRequest,
    service: SystemSettingsService = Depends(get_system_settings_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.SystemSettingsResponse:
    return service.update_settings(request, principal)


@router.post("/system-settings/reset", response_model=schemas.SystemSettingsResponse)
def reset_system_settings(
    service: SystemSettingsService = Depends(get_system_settings_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.SystemSettingsResponse:
    return service.reset_settings(principal)
