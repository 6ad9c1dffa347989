"""Cross-firm matter sharing endpoints.

``/matters/shares`` manages shares; ``/shares`` is the receiving firm's view of
shared documents.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ... import schemas
from ...policy import Principal
from ...schema.enums import ShareStatus
from ...services import MatterSharingService
from ..dependencies import get_current_user, get_sharing_service
from ..responses import attachment_headers, document_response

router = APIRouter(prefix="/matters/shares", tags=["sharing"])
shared_router = APIRouter(prefix="/shares", tags=["sharing"])

WATERMARK_HEADER = "X-Watermark-Required"


def _share_list(service: MatterSharingService, shares) -> schemas.MatterShareListResponse:
    return schemas.MatterShareListResponse(
        shares=[service.to_response(share) for share in shares], total=len(shares)
    )


# ========================================================================
# 공유 관리
# ========================================================================


@router.post("", response_model=schemas.MatterShareResponse, status_code=201)
def create_share(
    request: schemas.MatterShareCreateRequest,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareResponse:
    return service.to_response(service.create_share(request, principal))


@router.get("/incoming", response_model=schemas.MatterShareListResponse)
def list_incoming(
    status_filter: Optional[ShareStatus] = Query(None, alias="status"),
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareListResponse:
    return _share_list(service, service.list_incoming(principal, status=status_filter))


@router.get("/outgoing", response_model=schemas.MatterShareListResponse)
def list_outgoing(
    status_filter: Optional[ShareStatus] = Query(None, alias="status"),
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareListResponse:
    return _share_list(service, service.list_outgoing(principal, status=status_filter))


@router.get("/stats", response_model=schemas.ShareStatsResponse)
def share_stats(
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ShareStatsResponse:
    return service.stats(principal)


@router.get("/firms/search", response_model=list[schemas.FirmSummary])
def search_firms(
    q: str = Query("", max_length=255),
    limit: int = Query(20, ge=1, le=100),
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.FirmSummary]:
    """공유 대상 로펌 검색."""
    return [
        schemas.FirmSummary.model_validate(firm)
        for firm in service.search_firms(q, principal, limit=limit)
    ]


@router.post("/expire", response_model=schemas.ShareExpireResponse)
def expire_shares(
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ShareExpireResponse:
    return schemas.ShareExpireResponse(expired=service.expire_old_shares(principal=principal))


@router.get("/matter/{matter_id}", response_model=schemas.MatterShareListResponse)
def list_matter_shares(
    matter_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareListResponse:
    return _share_list(service, service.list_for_matter(matter_id, principal))


@router.get("/matter/{matter_id}/history", response_model=list[schemas.AuditLogEntry])
def matter_share_history(
    matter_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.AuditLogEntry]:
    return [
        schemas.AuditLogEntry.model_validate(entry)
        for entry in service.share_history(matter_id, principal)
    ]


@router.get("/{share_id}", response_model=schemas.MatterShareResponse)
def get_share(
    share_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareResponse:
    return service.to_response(service.get_share(share_id, principal))


@router.patch("/{share_id}", response_model=schemas.MatterShareResponse)
def update_share(
    share_id: uuid.UUID,
    request: schemas.MatterShareUpdateRequest,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareResponse:
    return service.to_response(service.update_share(share_id, request, principal))


@router.delete("/{share_id}", status_code=204)
def delete_share(
    share_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.delete_share(share_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{share_id}/accept", response_model=schemas.MatterShareResponse)
def accept_share(
    share_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareResponse:
    return service.to_response(service.accept_share(share_id, principal))


@router.post("/{share_id}/decline", response_model=schemas.MatterShareResponse)
def decline_share(
    share_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareResponse:
    return service.to_response(service.decline_share(share_id, principal))


@router.post("/{share_id}/revoke", response_model=schemas.MatterShareResponse)
def revoke_share(
    share_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterShareResponse:
    return service.to_response(service.revoke_share(share_id, principal))


# ========================================================================
# 공유 문서 (수신 로펌)
# ========================================================================


@shared_router.get("/{share_id}/documents", response_model=list[schemas.DocumentResponse])
def list_shared_documents(
    share_id: uuid.UUID,
    response: Response,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.DocumentResponse]:
    share, documents = service.list_shared_documents(share_id, principal)
    if (share.permissions or {}).get("watermark_required"):
        response.headers[WATERMARK_HEADER] = "true"
    return [document_response(document) for document in documents]


@shared_router.get("/{share_id}/documents/{document_id}/download")
def download_shared_document(
    share_id: uuid.UUID,
    document_id: uuid.UUID,
    service: MatterSharingService = Depends(get_sharing_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    download = service.download_shared_document(share_id, document_id, principal)
    headers = attachment_headers(download.document.original_filename)
    if download.watermark_required:
        headers[WATERMARK_HEADER] = "true"
    return Response(
        content=download.content,
        media_type=download.document.mime_type,
        headers=headers,
    )
