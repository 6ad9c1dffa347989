"""Matter endpoints, including matter teams."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ... import schemas
from ...policy import Principal
from ...schema.enums import MatterStatus
from ...services import MatterService
from ..dependencies import get_current_user, get_matter_service
from ..responses import (
    attachment_headers,
    document_response,
    matter_response,
    team_member_response,
)

router = APIRouter(prefix="/matters", tags=["matters"])


@router.post("", response_model=schemas.MatterResponse, status_code=201)
def create_matter(
    request: schemas.MatterCreateRequest,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterResponse:
    return matter_response(service.create_matter(request, principal), 0)


@router.get("", response_model=schemas.MatterListResponse)
def list_matters(
    search: Optional[str] = Query(None),
    status_filter: Optional[MatterStatus] = Query(None, alias="status"),
    client_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterListResponse:
    matters, total = service.list_matters(
        principal,
        search=search,
        status=status_filter,
        client_id=client_id,
        page=page,
        limit=limit,
    )
    counts = service.documents_count([matter.id for matter in matters])
    return schemas.MatterListResponse(
        matters=[matter_response(matter, counts.get(matter.id)) for matter in matters],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{matter_id}", response_model=schemas.MatterResponse)
def get_matter(
    matter_id: uuid.UUID,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterResponse:
    matter = service.get_matter(matter_id, principal)
    return matter_response(matter, service.documents_count([matter.id])[matter.id])


@router.patch("/{matter_id}", response_model=schemas.MatterResponse)
def update_matter(
    matter_id: uuid.UUID,
    request: schemas.MatterUpdateRequest,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterResponse:
    return matter_response(service.update_matter(matter_id, request, principal))


@router.patch("/{matter_id}/status", response_model=schemas.MatterResponse)
def update_matter_status(
    matter_id: uuid.UUID,
    request: schemas.MatterStatusUpdateRequest,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.MatterResponse:
    return matter_response(service.update_status(matter_id, request.status, principal))


@router.delete("/{matter_id}", status_code=204)
def delete_matter(
    matter_id: uuid.UUID,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.delete_matter(matter_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{matter_id}/documents", response_model=list[schemas.DocumentResponse])
def list_matter_documents(
    matter_id: uuid.UUID,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.DocumentResponse]:
    return [
        document_response(document)
        for document in service.list_matter_documents(matter_id, principal)
    ]


@router.post("/{matter_id}/export")
def export_matter(
    matter_id: uuid.UUID,
    request: Optional[schemas.MatterExportRequest] = None,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    export = service.export_matter(matter_id, request or schemas.MatterExportRequest(), principal)
    headers = attachment_headers(export.filename)
    headers["X-Export-Documents"] = str(export.manifest["export"]["total_documents"])
    headers["X-Export-Size"] = str(len(export.content))
    return Response(content=export.content, media_type="application/zip", headers=headers)


# ========================================================================
# 사건 팀
# ========================================================================


@router.get("/{matter_id}/team", response_model=list[schemas.TeamMemberResponse])
def list_matter_team(
    matter_id: uuid.UUID,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.TeamMemberResponse]:
    return [team_member_response(member) for member in service.list_team(matter_id, principal)]


@router.post("/{matter_id}/team", response_model=schemas.TeamMemberResponse, status_code=201)
def add_matter_team_member(
    matter_id: uuid.UUID,
    request: schemas.TeamMemberAddRequest,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.TeamMemberResponse:
    return team_member_response(service.add_team_member(matter_id, request, principal))


@router.delete("/{matter_id}/team/{user_id}", status_code=204)
def remove_matter_team_member(
    matter_id: uuid.UUID,
    user_id: uuid.UUID,
    service: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.remove_team_member(matter_id, user_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
