"""Retention eligibility and bulk legal hold endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ... import schemas
from ...policy import Principal
from ...services import RetentionService
from ..dependencies import get_current_user, get_retention_service
from ..responses import document_response

router = APIRouter(prefix="/retention", tags=["retention"])


@router.get("/eligible", response_model=list[schemas.DocumentResponse])
def eligible_for_deletion(
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.DocumentResponse]:
    """보존 기간 만료 문서."""
    return [document_response(doc) for doc in service.eligible_for_deletion(principal)]


@router.post("/legal-hold", response_model=schemas.BulkOperationResponse)
def bulk_legal_hold(
    request: schemas.BulkLegalHoldRequest,
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.BulkOperationResponse:
    return service.bulk_legal_hold(request.document_ids, request.reason, principal)


@router.post("/legal-hold/release", response_model=schemas.BulkOperationResponse)
def bulk_release(
    request: schemas.BulkLegalHoldRequest,
    service: RetentionService = Depends(get_retention_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.BulkOperationResponse:
    return service.bulk_legal_hold(request.document_ids, request.reason, principal, apply=False)
