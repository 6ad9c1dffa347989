"""Platform-wide system settings."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import delete, func, select

from .. import schemas
from ..models import DEFAULT_SYSTEM_SETTINGS, SystemSetting
from ..models.base import utcnow
from ..policy import Principal
from ..schema.enums import AuditRiskLevel
from .base import ServiceBase

__all__ = ["SystemSettingsService"]

logger = structlog.get_logger(__name__)


class SystemSettingsService(ServiceBase):
    """시스템 설정 관리. 읽기는 관리자, 변경은 super_admin."""

    def _values(self) -> dict[str, Any]:
        values = {key: default for key, (default, _) in DEFAULT_SYSTEM_SETTINGS.items()}
        for row in self.session.execute(select(SystemSetting)).scalars():
            if row.key in values:
                values[row.key] = row.value
        return values

    def _response(self) -> schemas.SystemSettingsResponse:
        updated_at = self.session.execute(select(func.max(SystemSetting.updated_at))).scalar()
        return schemas.SystemSettingsResponse(**self._values(), updated_at=updated_at)

    def get_settings(self, principal: Principal) -> schemas.SystemSettingsResponse:
        self.authorize(principal, "read", "system_settings")
        return self._response()

    def update_settings(
        self, request: schemas.SystemSettingsUpdateRequest, principal: Principal
    ) -> schemas.SystemSettingsResponse:
        self.authorize(principal, "write", "system_settings")
        changes = request.model_dump(exclude_unset=True, exclude_none=True, mode="json")
        if not changes:
            raise ValueError("No settings to update")
        now = utcnow()
        for key, value in changes.items():
            row = self.session.get(SystemSetting, key)
            if row is None:
                row = SystemSetting(key=key, description=DEFAULT_SYSTEM_SETTINGS[key][1])
                self.session.add(row)
            row.value = value
            row.updated_by = principal.id
            row.updated_at = now
        self.audit.log(
            principal,
            "system_settings_update",
            "system_settings",
            None,
            {"keys": sorted(changes)},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        logger.info("system_settings_updated", keys=sorted(changes), user_id=str(principal.id))
        return self._response()

    def reset_settings(self, principal: Principal) -> schemas.SystemSettingsResponse:
        """Drop stored values so every key falls back to its default."""
        self.authorize(principal, "write", "system_settings")
        self.session.execute(delete(SystemSetting))
        self.audit.log(
            principal,
            "system_settings_reset",
            "system_settings",
            None,
            {},
            risk_level=AuditRiskLevel.HIGH,
        )
        self.session.commit()
        return self._response()
