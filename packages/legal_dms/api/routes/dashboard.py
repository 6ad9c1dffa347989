"""Dashboard endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ... import schemas
from ...policy import Principal
from ...services import DashboardService
from ..dependencies import get_current_user, get_dashboard_service

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=schemas.DashboardStatsResponse)
def dashboard_stats(
    service: DashboardService = Depends(get_dashboard_service),
    principal: Principal = Depends(get_current_user),
) -> schemas.DashboardStatsResponse:
    return service.stats(principal)
