"""API route for organization overview statistics."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import OverviewStatsResponse
from src.db.connection import get_db
from src.services.dashboard_service import DashboardService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/overview", response_model=OverviewStatsResponse)
def get_overview(
    organization_id: str,
    db: Session = Depends(get_db),
) -> OverviewStatsResponse:
    """Count active projects, dashboards and data sources for an organization."""
    counts = DashboardService(db).overview_stats(organization_id)
    return OverviewStatsResponse(organization_id=organization_id, **counts)
