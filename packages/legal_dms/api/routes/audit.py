"""Matter audit trail endpoint."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from ... import schemas
from ...policy import Principal
from ...services import MatterService
from ..dependencies import get_current_user, get_matter_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/matter/{matter_id}", response_model=schemas.MatterAuditResponse)
def matter_audit(
    matter_id: uuid.UUID,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterAuditResponse:
    """사건, 사건 문서, 사건 공유에 대한 감사 기록."""
    entries = service.audit_history(matter_id, principal)
    return schemas.MatterAuditResponse(
        matter_id=matter_id,
        entries=[schemas.AuditLogEntry.model_validate(entry) for entry in entries],
    )
