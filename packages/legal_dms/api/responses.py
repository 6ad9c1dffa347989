"""ORM row to response schema conversion shared by the routers."""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from .. import schemas
from ..models import Client, Document, Matter, MatterTeam, Team

__all__ = [
    "attachment_headers",
    "client_response",
    "document_response",
    "matter_response",
    "team_member_response",
    "team_response",
]


def attachment_headers(filename: str) -> dict[str, str]:
    """``Content-Disposition`` for *filename*, RFC 5987 encoded."""

    fallback = filename.encode("ascii", "ignore").decode() or "download"
    fallback = fallback.replace('"', "")
    return {
        "Content-Disposition": (
            f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"
        )
    }


def matter_response(matter: Matter, documents_count: Optional[int] = None) -> schemas.MatterResponse:
    response = schemas.MatterResponse.model_validate(matter)
    return response.model_copy(
        update={
            "client_name": matter.client.name if matter.client is not None else None,
            "documents_count": documents_count,
        }
    )


def client_response(
    client: Client, counts: Optional[tuple[int, int]] = None
) -> schemas.ClientResponse:
    response = schemas.ClientResponse.model_validate(client)
    if counts is None:
        return response
    return response.model_copy(
        update={"matter_count": counts[0], "document_count": counts[1]}
    )


def document_response(
    document: Document, download_url: Optional[str] = None
) -> schemas.DocumentResponse:
    response = schemas.DocumentResponse.model_validate(document)
    if download_url is None:
        return response
    return response.model_copy(update={"download_url": download_url})


def team_response(team: Team) -> schemas.TeamResponse:
    return schemas.TeamResponse(
        id=team.id,
        firm_id=team.firm_id,
        name=team.name,
        description=team.description,
        member_ids=[member.id for member in team.members],
        created_at=team.created_at,
    )


def team_member_response(member: MatterTeam) -> schemas.TeamMemberResponse:
    return schemas.TeamMemberResponse(
        id=member.id,
        matter_id=member.matter_id,
        user_id=member.user_id,
        display_name=member.user.display_name if member.user else None,
        email=member.user.email if member.user else None,
        role=member.role,
        access_level=member.access_level,
        added_by=member.added_by,
        added_at=member.added_at,
    )
