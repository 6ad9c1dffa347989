"""Client endpoints."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ... import schemas
from ...policy import Principal
from ...services import ClientService, MatterService
from ..dependencies import get_client_service, get_current_user, get_matter_service
from ..responses import client_response, document_response, matter_response

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=schemas.ClientResponse, status_code=201)
def create_client(
    request: schemas.ClientCreateRequest,
    service: ClientService = Depends(get_client_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ClientResponse:
    return client_response(service.create_client(request, principal), (0, 0))


@router.get("", response_model=schemas.ClientListResponse)
def list_clients(
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    service: ClientService = Depends(get_client_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ClientListResponse:
    clients, total = service.list_clients(
        principal, search=search, status=status_filter, page=page, limit=limit
    )
    counts = service.counts_for([client.id for client in clients])
    return schemas.ClientListResponse(
        clients=[client_response(client, counts.get(client.id)) for client in clients],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{client_id}", response_model=schemas.ClientResponse)
def get_client(
    client_id: uuid.UUID,
    service: ClientService = Depends(get_client_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ClientResponse:
    client = service.get_client(client_id, principal)
    return client_response(client, service.counts_for([client.id]).get(client.id))


@router.patch("/{client_id}", response_model=schemas.ClientResponse)
def update_client(
    client_id: uuid.UUID,
    request: schemas.ClientUpdateRequest,
    service: ClientService = Depends(get_client_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.ClientResponse:
    return client_response(service.update_client(client_id, request, principal))


@router.delete("/{client_id}", status_code=204)
def delete_client(
    client_id: uuid.UUID,
    service: ClientService = Depends(get_client_service),
    principal: Principal = Depends(get_current_user),
) -> Response:
    service.delete_client(client_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{client_id}/matters", response_model=list[schemas.MatterResponse])
def list_client_matters(
    client_id: uuid.UUID,
    service: ClientService = Depends(get_client_service),
    matters: MatterService = Depends(get_matter_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.MatterResponse]:
    rows = service.list_client_matters(client_id, principal)
    counts = matters.documents_count([matter.id for matter in rows])
    return [matter_response(matter, counts.get(matter.id)) for matter in rows]


@router.get("/{client_id}/documents", response_model=list[schemas.DocumentResponse])
def list_client_documents(
    client_id: uuid.UUID,
    service: ClientService = Depends(get_client_service),
    principal: Principal = Depends(get_current_user),
) -> list[schemas.DocumentResponse]:
    return [
        document_response(document)
        for document in service.list_client_documents(client_id, principal)
    ]
