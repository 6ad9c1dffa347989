"""Document endpoints: multipart upload, listing, download and legal hold."""

from __future__ import annotations

import json
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from ... import schemas
from ...policy import Principal
from ...services import DocumentService
from ..dependencies import get_current_user, get_document_service
from ..responses import attachment_headers, document_response

router = APIRouter(prefix="/documents", tags=["documents"])


def _split(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def upload_metadata(
    matter_id: uuid.UUID = Form(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    parties: Optional[str] = Form(None),
    jurisdiction: Optional[str] = Form(None),
    document_type: Optional[str] = Form(None),
    document_date: Optional[str] = Form(None),
    effective_date: Optional[str] = Form(None),
    expiry_date: Optional[str] = Form(None),
    confidential: bool = Form(False),
    privileged: bool = Form(False),
    work_product: bool = Form(False),
    security_class: Optional[int] = Form(None),
    retention_class_id: Optional[uuid.UUID] = Form(None),
    parent_document_id: Optional[uuid.UUID] = Form(None),
    custom_fields: Optional[str] = Form(None),
) -> schemas.DocumentUploadMetadata:
    """Multipart form fields; ``tags``/``parties`` are comma-separated, ``custom_fields`` JSON."""
    return schemas.DocumentUploadMetadata(
        matter_id=matter_id,
        title=title,
        description=description,
        tags=_split(tags),
        parties=_split(parties),
        jurisdiction=jurisdiction,
        document_type=document_type,
        document_date=document_date or None,
        effective_date=effective_date or None,
        expiry_date=expiry_date or None,
        confidential=confidential,
        privileged=privileged,
        work_product=work_product,
        security_class=security_class,
        retention_class_id=retention_class_id,
        parent_document_id=parent_document_id,
        custom_fields=json.loads(custom_fields) if custom_fields else {},
    )


@router.post("", response_model=schemas.DocumentResponse, status_code=201)
def upload_document(
    file: UploadFile = File(...),
    metadata: schemas.DocumentUploadMetadata = Depends(upload_metadata),
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentResponse:
    """문서 업로드."""
    try:
        payload = file.file.read()
    finally:
        file.file.close()
    document = service.upload_document(
        principal, payload, file.filename or "upload", file.content_type, metadata
    )
    return document_response(document)


@router.get("", response_model=schemas.DocumentListResponse)
def list_documents(
    search: Optional[str] = Query(None),
    matter_id: Optional[uuid.UUID] = Query(None),
    client_id: Optional[uuid.UUID] = Query(None),
    document_type: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma-separated; all must match"),
    confidential: Optional[bool] = Query(None),
    legal_hold: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentListResponse:
    documents, total = service.list_documents(
        principal,
        search=search,
        matter_id=matter_id,
        client_id=client_id,
        document_type=document_type,
        tags=_split(tags),
        confidential=confidential,
        legal_hold=legal_hold,
        page=page,
        limit=limit,
    )
    return schemas.DocumentListResponse(
        documents=[document_response(document) for document in documents],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{document_id}", response_model=schemas.DocumentResponse)
def get_document(
    document_id: uuid.UUID,
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentResponse:
    document = service.get_document(document_id, principal)
    return document_response(document, service.download_url(document))


@router.get("/{document_id}/download")
def download_document(
    document_id: uuid.UUID,
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    document, content = service.download_document(document_id, principal)
    return Response(
        content=content,
        media_type=document.mime_type,
        headers=attachment_headers(document.original_filename),
    )


@router.delete("/{document_id}", status_code=204)
def delete_document(
    document_id: uuid.UUID,
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.delete_document(document_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{document_id}/legal-hold", response_model=schemas.DocumentResponse)
def set_legal_hold(
    document_id: uuid.UUID,
    request: schemas.LegalHoldRequest,
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentResponse:
    return document_response(service.set_legal_hold(document_id, request.reason, principal))


@router.delete("/{document_id}/legal-hold", response_model=schemas.DocumentResponse)
def remove_legal_hold(
    document_id: uuid.UUID,
    service: DocumentService = Depends(get_document_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DocumentResponse:
    return document_response(service.remove_legal_hold(document_id, principal))
