"""Liveness endpoint."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ... import schemas
from ...models.base import utcnow
from ..dependencies import get_session, get_storage

router = APIRouter(tags=["health"])

logger = structlog.get_logger(__name__)


@router.get("/health", response_model=schemas.HealthResponse)
def health(
    session: Session = Depends(get_session),
    storage=Depends(get_storage),
) -> schemas.HealthResponse:
    try:
        session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.warning("health_database_unavailable", error=str(exc))
        database = "unavailable"
    storage_state = "ok" if storage.health_check() else "unavailable"
    overall = "ok" if database == storage_state == "ok" else "degraded"
    return schemas.HealthResponse(
        status=overall, database=database, storage=storage_state, timestamp=utcnow()
    )
