"""Pydantic schemas for DMS API requests/responses."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .clearance import MAX_CLEARANCE, MIN_CLEARANCE
from .schema.enums import (
    AccessLevel,
    AuditOutcome,
    AuditRiskLevel,
    MatterRole,
    MatterStatus,
    ShareRole,
    ShareStatus,
    UploaderType,
)

__all__ = [
    "FirmCreateRequest",
    "FirmUpdateRequest",
    "FirmResponse",
    "FirmListResponse",
    "FirmOnboardRequest",
    "FirmOnboardResponse",
    "FirmSettingsUpdateRequest",
    "FirmStatsResponse",
    "SystemStatsResponse",
    "BackupConfig",
    "SmtpConfig",
    "WatermarkConfig",
    "SecurityPolicy",
    "SystemSettingsResponse",
    "SystemSettingsUpdateRequest",
    "UserCreateRequest",
    "UserUpdateRequest",
    "UserRolesUpdateRequest",
    "ClearanceUpdateRequest",
    "UserResponse",
    "UserListResponse",
    "ClearanceInfoResponse",
    "RoleResponse",
    "TeamCreateRequest",
    "TeamResponse",
    "BulkUserOperationRequest",
    "BulkOperationResponse",
    "RetentionClassCreateRequest",
    "RetentionClassUpdateRequest",
    "RetentionClassResponse",
    "BulkLegalHoldRequest",
    "ClientCreateRequest",
    "ClientUpdateRequest",
    "ClientResponse",
    "ClientListResponse",
    "MatterCreateRequest",
    "MatterUpdateRequest",
    "MatterStatusUpdateRequest",
    "MatterResponse",
    "MatterListResponse",
    "MatterExportRequest",
    "TeamMemberAddRequest",
    "TeamMemberResponse",
    "DocumentUploadMetadata",
    "DocumentMetaResponse",
    "DocumentResponse",
    "DocumentListResponse",
    "LegalHoldRequest",
    "SharePermissions",
    "TimeRestriction",
    "ShareRestrictions",
    "MatterShareCreateRequest",
    "MatterShareUpdateRequest",
    "MatterShareResponse",
    "MatterShareListResponse",
    "FirmSummary",
    "ShareStatsResponse",
    "ShareExpireResponse",
    "ActivityItem",
    "DashboardStatsResponse",
    "PortalStats",
    "PortalDashboardResponse",
    "PortalMatterOption",
    "PortalUploadSettings",
    "AuditLogEntry",
    "AuditLogListResponse",
    "MatterAuditResponse",
    "HealthResponse",
]

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
_HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ========================================================================
# 로펌 (firms)
# ========================================================================


class FirmCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    external_ref: Optional[str] = Field(None, max_length=255)
    settings: dict[str, Any] = Field(default_factory=dict)


class FirmUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    external_ref: Optional[str] = Field(None, max_length=255)


class FirmResponse(_OrmModel):
    id: uuid.UUID
    name: str
    external_ref: Optional[str] = None
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: dt.datetime
    updated_at: dt.datetime
    deleted_at: Optional[dt.datetime] = None


class FirmListResponse(BaseModel):
    firms: list[FirmResponse]
    total: int
    page: int
    limit: int


class FirmOnboardRequest(BaseModel):
    """Firm plus its first administrator, created together."""

    name: str = Field(..., min_length=1, max_length=255)
    external_ref: Optional[str] = Field(None, max_length=255)
    settings: dict[str, Any] = Field(default_factory=dict)
    admin_email: str = Field(..., pattern=_EMAIL_PATTERN, max_length=255)
    admin_display_name: str = Field(..., min_length=1, max_length=255)
    admin_clearance_level: Optional[int] = Field(None, ge=MIN_CLEARANCE, le=MAX_CLEARANCE)


class FirmSettingsUpdateRequest(BaseModel):
    settings: dict[str, Any]


class FirmStatsResponse(BaseModel):
    firm_id: uuid.UUID
    total_users: int
    active_users: int
    total_clients: int
    total_matters: int
    matters_by_status: dict[str, int]
    total_documents: int
    storage_used_bytes: int
    documents_on_legal_hold: int


class SystemStatsResponse(BaseModel):
    users: dict[str, Any]
    documents: dict[str, int]
    matters: dict[str, Any]
    storage: dict[str, int]


# ========================================================================
# 시스템 설정 (system settings)
# ========================================================================


class BackupConfig(BaseModel):
    frequency: Literal["daily", "weekly", "monthly"] = "daily"
    retention_days: int = Field(30, ge=1, le=3650)
    enabled: bool = True


class SmtpConfig(BaseModel):
    host: str = Field("smtp.example.com", max_length=255)
    port: int = Field(587, ge=1, le=65535)
    secure: bool = False
    enabled: bool = False


class WatermarkConfig(BaseModel):
    enabled: bool = True
    text: str = Field("CONFIDENTIAL - {firm_name}", max_length=255)
    opacity: float = Field(0.3, ge=0, le=1)


class SecurityPolicy(BaseModel):
    session_timeout_minutes: int = Field(60, ge=5, le=1440)
    max_login_attempts: int = Field(5, ge=1, le=100)
    password_expiry_days: int = Field(90, ge=0, le=3650)
    require_mfa_for_admins: bool = True


class SystemSettingsResponse(BaseModel):
    platform_name: str
    default_retention_years: int
    max_file_size_mb: int
    enable_ocr: bool
    enable_legal_holds: bool
    enable_cross_firm_sharing: bool
    backup_config: BackupConfig
    smtp_config: SmtpConfig
    watermark_config: WatermarkConfig
    security_policy: SecurityPolicy
    updated_at: Optional[dt.datetime] = None


class SystemSettingsUpdateRequest(BaseModel):
    """Partial update; omitted keys keep their value."""

    platform_name: Optional[str] = Field(None, min_length=1, max_length=255)
    default_retention_years: Optional[int] = Field(None, ge=0, le=100)
    max_file_size_mb: Optional[int] = Field(None, ge=1, le=1000)
    enable_ocr: Optional[bool] = None
    enable_legal_holds: Optional[bool] = None
    enable_cross_firm_sharing: Optional[bool] = None
    backup_config: Optional[BackupConfig] = None
    smtp_config: Optional[SmtpConfig] = None
    watermark_config: Optional[WatermarkConfig] = None
    security_policy: Optional[SecurityPolicy] = None


# ========================================================================
# 사용자 / 역할 / 팀
# ========================================================================


class UserCreateRequest(BaseModel):
    email: str = Field(..., pattern=_EMAIL_PATTERN, max_length=255)
    display_name: str = Field(..., min_length=1, max_length=255)
    firm_id: Optional[uuid.UUID] = None
    roles: list[str] = Field(..., min_length=1)
    clearance_level: Optional[int] = Field(None, ge=MIN_CLEARANCE, le=MAX_CLEARANCE)
    attributes: dict[str, Any] = Field(default_factory=dict)
    client_ids: list[uuid.UUID] = Field(default_factory=list)


class UserUpdateRequest(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, pattern=_EMAIL_PATTERN, max_length=255)
    attributes: Optional[dict[str, Any]] = None
    client_ids: Optional[list[uuid.UUID]] = None
    is_active: Optional[bool] = None


class UserRolesUpdateRequest(BaseModel):
    roles: list[str] = Field(..., min_length=1)


class ClearanceUpdateRequest(BaseModel):
    clearance_level: int = Field(..., ge=MIN_CLEARANCE, le=MAX_CLEARANCE)


class UserResponse(_OrmModel):
    id: uuid.UUID
    firm_id: Optional[uuid.UUID] = None
    email: str
    display_name: str
    roles: list[str]
    attributes: dict[str, Any] = Field(default_factory=dict)
    clearance_level: int
    is_active: bool
    last_login_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    limit: int


class FirmOnboardResponse(BaseModel):
    firm: FirmResponse
    admin: UserResponse


class ClearanceInfoResponse(BaseModel):
    user_id: uuid.UUID
    clearance_level: int
    label: str
    recommended_level: int
    min_level: int
    max_level: int


class RoleResponse(_OrmModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    permissions: list[str]
    hierarchy_level: int
    is_active: bool
    is_system_role: bool


class TeamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    member_ids: list[uuid.UUID] = Field(default_factory=list)


class TeamResponse(BaseModel):
    id: uuid.UUID
    firm_id: uuid.UUID
    name: str
    description: Optional[str] = None
    member_ids: list[uuid.UUID]
    created_at: dt.datetime


class BulkUserOperationRequest(BaseModel):
    user_ids: list[uuid.UUID] = Field(..., min_length=1)
    operation: Literal["activate", "deactivate", "assign_role", "remove_role"]
    role: Optional[str] = None


class BulkOperationResponse(BaseModel):
    processed: int
    failed: list[dict[str, str]] = Field(default_factory=list)


# ========================================================================
# 보존 정책 (retention)
# ========================================================================


class RetentionClassCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    retention_years: int = Field(..., ge=0, le=100)
    legal_hold_override: bool = False


class RetentionClassUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    retention_years: Optional[int] = Field(None, ge=0, le=100)
    legal_hold_override: Optional[bool] = None


class RetentionClassResponse(_OrmModel):
    id: uuid.UUID
    firm_id: uuid.UUID
    name: str
    description: Optional[str] = None
    retention_years: int
    legal_hold_override: bool
    created_at: dt.datetime


class BulkLegalHoldRequest(BaseModel):
    document_ids: list[uuid.UUID] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=2000)


# ========================================================================
# 의뢰인 (clients)
# ========================================================================


class ClientCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    external_ref: Optional[str] = Field(None, max_length=255)
    contact_email: Optional[str] = Field(None, pattern=_EMAIL_PATTERN, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    client_type: Optional[str] = Field(None, max_length=50)
    firm_id: Optional[uuid.UUID] = None


class ClientUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    external_ref: Optional[str] = Field(None, max_length=255)
    contact_email: Optional[str] = Field(None, pattern=_EMAIL_PATTERN, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    client_type: Optional[str] = Field(None, max_length=50)
    status: Optional[str] = Field(None, max_length=50)


class ClientResponse(_OrmModel):
    id: uuid.UUID
    firm_id: uuid.UUID
    name: str
    external_ref: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    client_type: Optional[str] = None
    status: str
    created_at: dt.datetime
    updated_at: dt.datetime
    matter_count: Optional[int] = None
    document_count: Optional[int] = None


class ClientListResponse(BaseModel):
    clients: list[ClientResponse]
    total: int
    page: int
    limit: int


# ========================================================================
# 사건 (matters)
# ========================================================================


class MatterCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    client_id: Optional[uuid.UUID] = None
    status: MatterStatus = MatterStatus.ACTIVE
    security_class: int = Field(1, ge=1, le=5)


class MatterUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    description: Optional[str] = None
    client_id: Optional[uuid.UUID] = None
    status: Optional[MatterStatus] = None
    security_class: Optional[int] = Field(None, ge=1, le=5)


class MatterStatusUpdateRequest(BaseModel):
    status: MatterStatus


class MatterResponse(_OrmModel):
    id: uuid.UUID
    firm_id: uuid.UUID
    client_id: Optional[uuid.UUID] = None
    client_name: Optional[str] = None
    title: str
    description: Optional[str] = None
    status: MatterStatus
    security_class: int
    created_by: Optional[uuid.UUID] = None
    created_at: dt.datetime
    updated_at: dt.datetime
    documents_count: Optional[int] = None


class MatterListResponse(BaseModel):
    matters: list[MatterResponse]
    total: int
    page: int
    limit: int


class MatterExportRequest(BaseModel):
    include_documents: bool = True
    include_metadata: bool = True
    include_audit_trail: bool = False
    document_types: list[str] = Field(default_factory=list)
    date_from: Optional[dt.datetime] = None
    date_to: Optional[dt.datetime] = None
    confidentiality_levels: list[
        Literal["public", "confidential", "privileged", "work_product"]
    ] = Field(default_factory=list)


class TeamMemberAddRequest(BaseModel):
    user_id: uuid.UUID
    role: MatterRole
    access_level: AccessLevel = AccessLevel.READ_ONLY


class TeamMemberResponse(BaseModel):
    id: uuid.UUID
    matter_id: uuid.UUID
    user_id: uuid.UUID
    display_name: Optional[str] = None
    email: Optional[str] = None
    role: MatterRole
    access_level: AccessLevel
    added_by: Optional[uuid.UUID] = None
    added_at: dt.datetime


# ========================================================================
# 문서 (documents)
# ========================================================================


class DocumentUploadMetadata(BaseModel):
    """Form fields accompanying a multipart upload."""

    matter_id: uuid.UUID
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    parties: list[str] = Field(default_factory=list)
    jurisdiction: Optional[str] = Field(None, max_length=100)
    document_type: Optional[str] = Field(None, max_length=100)
    document_date: Optional[dt.date] = None
    effective_date: Optional[dt.date] = None
    expiry_date: Optional[dt.date] = None
    confidential: bool = False
    privileged: bool = False
    work_product: bool = False
    security_class: Optional[int] = Field(None, ge=MIN_CLEARANCE, le=MAX_CLEARANCE)
    retention_class_id: Optional[uuid.UUID] = None
    parent_document_id: Optional[uuid.UUID] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class DocumentMetaResponse(_OrmModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    parties: list[str] = Field(default_factory=list)
    jurisdiction: Optional[str] = None
    document_type: Optional[str] = None
    document_date: Optional[dt.date] = None
    effective_date: Optional[dt.date] = None
    expiry_date: Optional[dt.date] = None
    confidential: bool = False
    privileged: bool = False
    work_product: bool = False
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    pages: Optional[int] = None


class DocumentResponse(_OrmModel):
    id: uuid.UUID
    matter_id: uuid.UUID
    firm_id: uuid.UUID
    client_id: Optional[uuid.UUID] = None
    original_filename: str
    mime_type: str
    size_bytes: int
    content_sha256: str
    version: int
    parent_document_id: Optional[uuid.UUID] = None
    retention_class_id: Optional[uuid.UUID] = None
    security_class: Optional[int] = None
    legal_hold: bool
    legal_hold_reason: Optional[str] = None
    legal_hold_set_at: Optional[dt.datetime] = None
    uploaded_by_type: UploaderType
    created_by: Optional[uuid.UUID] = None
    created_at: dt.datetime
    updated_at: dt.datetime
    metadata: Optional[DocumentMetaResponse] = Field(None, validation_alias="meta")
    download_url: Optional[str] = None


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int
    page: int
    limit: int


class LegalHoldRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


# ========================================================================
# 사건 공유 (matter shares)
# ========================================================================


class SharePermissions(BaseModel):
    """Overrides merged over the role's default permissions."""

    model_config = ConfigDict(extra="forbid")

    can_download: Optional[bool] = None
    can_upload: Optional[bool] = None
    can_comment: Optional[bool] = None
    can_view_audit: Optional[bool] = None
    watermark_required: Optional[bool] = None


class TimeRestriction(BaseModel):
    start_time: str = Field(..., pattern=_HHMM_PATTERN)
    end_time: str = Field(..., pattern=_HHMM_PATTERN)
    timezone: str = "UTC"


class ShareRestrictions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    allowed_document_types: Optional[list[str]] = None
    max_download_count: Optional[int] = Field(None, ge=0)
    ip_whitelist: Optional[list[str]] = None
    time_restrictions: Optional[TimeRestriction] = None


class MatterShareCreateRequest(BaseModel):
    matter_id: uuid.UUID
    shared_with_firm_id: uuid.UUID
    role: ShareRole
    permissions: Optional[SharePermissions] = None
    restrictions: Optional[ShareRestrictions] = None
    invitation_message: Optional[str] = Field(None, max_length=2000)
    expires_at: Optional[dt.datetime] = None


class MatterShareUpdateRequest(BaseModel):
    role: Optional[ShareRole] = None
    status: Optional[ShareStatus] = None
    permissions: Optional[SharePermissions] = None
    restrictions: Optional[ShareRestrictions] = None
    invitation_message: Optional[str] = Field(None, max_length=2000)
    expires_at: Optional[dt.datetime] = None


class MatterShareResponse(BaseModel):
    id: uuid.UUID
    matter_id: uuid.UUID
    matter_title: Optional[str] = None
    shared_by_firm_id: uuid.UUID
    shared_by_firm_name: Optional[str] = None
    shared_with_firm_id: uuid.UUID
    shared_with_firm_name: Optional[str] = None
    shared_by_user_id: Optional[uuid.UUID] = None
    role: ShareRole
    status: ShareStatus
    accepted_at: Optional[dt.datetime] = None
    accepted_by_user_id: Optional[uuid.UUID] = None
    invitation_message: Optional[str] = None
    permissions: dict[str, Any]
    restrictions: dict[str, Any]
    download_count: int
    expires_at: Optional[dt.datetime] = None
    is_active: bool
    created_at: dt.datetime
    updated_at: dt.datetime


class MatterShareListResponse(BaseModel):
    shares: list[MatterShareResponse]
    total: int


class FirmSummary(_OrmModel):
    id: uuid.UUID
    name: str


class ShareStatsResponse(BaseModel):
    outgoing: dict[str, int]
    incoming: dict[str, int]
    active_outgoing: int
    active_incoming: int


class ShareExpireResponse(BaseModel):
    expired: int


# ========================================================================
# 대시보드 / 클라이언트 포털
# ========================================================================


class ActivityItem(BaseModel):
    id: uuid.UUID
    type: Literal["document", "matter"]
    title: str
    timestamp: dt.datetime
    matter_id: Optional[uuid.UUID] = None


class DashboardStatsResponse(BaseModel):
    total_documents: int
    active_matters: int
    total_clients: int
    total_users: int
    storage_used_bytes: int
    storage_used: str
    pending_incoming_shares: int
    recent_activity: list[ActivityItem]


class PortalStats(BaseModel):
    active_matters: int
    total_matters: int
    total_documents: int
    recent_documents: int
    confidential_documents: int


class PortalDashboardResponse(BaseModel):
    client: ClientResponse
    stats: PortalStats
    recent_matters: list[MatterResponse]
    recent_documents: list[DocumentResponse]


class PortalMatterOption(BaseModel):
    id: uuid.UUID
    title: str
    status: MatterStatus


class PortalUploadSettings(BaseModel):
    max_file_size: int
    allowed_file_types: list[str]
    accessible_matters: list[PortalMatterOption]
    upload_enabled: bool


# ========================================================================
# 감사 로그 / 헬스체크
# ========================================================================


class AuditLogEntry(_OrmModel):
    id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    firm_id: Optional[uuid.UUID] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    risk_level: AuditRiskLevel
    outcome: AuditOutcome
    timestamp: dt.datetime


class AuditLogListResponse(BaseModel):
    logs: list[AuditLogEntry]
    total: int
    page: int
    limit: int


class MatterAuditResponse(BaseModel):
    matter_id: uuid.UUID
    entries: list[AuditLogEntry]


class HealthResponse(BaseModel):
    status: str
    database: str
    storage: str
    timestamp: dt.datetime
