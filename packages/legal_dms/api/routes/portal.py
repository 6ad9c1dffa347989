"""Client portal endpoints."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile

from ... import schemas
from ...policy import Principal
from ...schema.enums import MatterStatus
from ...services import ClientPortalService
from ..dependencies import get_current_user, get_portal_service
from ..responses import attachment_headers, document_response, matter_response
from .documents import upload_metadata

router = APIRouter(prefix="/client-portal", tags=["client-portal"])


@router.get("/dashboard", response_model=schemas.PortalDashboardResponse)
def portal_dashboard(
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.PortalDashboardResponse:
    return service.dashboard(principal)


@router.get("/matters", response_model=schemas.MatterListResponse)
def portal_matters(
    search: Optional[str] = Query(None),
    status_filter: Optional[MatterStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterListResponse:
    matters, total = service.list_matters(
        principal, search=search, status=status_filter, page=page, limit=limit
    )
    return schemas.MatterListResponse(
        matters=[matter_response(matter) for matter in matters],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/matters/{matter_id}", response_model=schemas.MatterResponse)
def portal_matter(
    matter_id: uuid.UUID,
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterResponse:
    return matter_response(service.get_matter(matter_id, principal))


@router.get("/documents", response_model=schemas.DocumentListResponse)
def portal_documents(
    search: Optional[str] = Query(None),
    matter_id: Optional[uuid.UUID] = Query(None),
    document_type: Optional[str] = Query(None),
    tags: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentListResponse:
    documents, total = service.list_documents(
        principal,
        search=search,
        matter_id=matter_id,
        document_type=document_type,
        tags=[tag.strip() for tag in (tags or "").split(",") if tag.strip()],
        page=page,
        limit=limit,
    )
    return schemas.DocumentListResponse(
        documents=[document_response(document) for document in documents],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/documents", response_model=schemas.DocumentResponse, status_code=201)
def portal_upload(
    file: UploadFile = File(...),
    metadata: schemas.DocumentUploadMetadata = Depends(upload_metadata),
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentResponse:
    """의뢰인 문서 업로드."""
    try:
        payload = file.file.read()
    finally:
        file.file.close()
    document = service.upload_document(
        principal, payload, file.filename or "upload", file.content_type, metadata
    )
    return document_response(document)


@router.get("/documents/{document_id}", response_model=schemas.DocumentResponse)
def portal_document(
    document_id: uuid.UUID,
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentResponse:
    return document_response(service.get_document(document_id, principal))


@router.get("/documents/{document_id}/download")
def portal_download(
    document_id: uuid.UUID,
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    document, content = service.download_document(document_id, principal)
    return Response(
        content=content,
        media_type=document.mime_type,
        headers=attachment_headers(document.original_filename),
    )


@router.get("/upload-settings", response_model=schemas.PortalUploadSettings)
def portal_upload_settings(
    service: ClientPortalService = Depends(get_portal_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.PortalUploadSettings:
    return service.upload_settings(principal)
