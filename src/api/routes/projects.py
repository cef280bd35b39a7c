"""API routes for individual projects.

Creating and listing happen under /api/v1/organizations/{id}/projects;
this module serves /api/v1/projects/{id}.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.schemas import ProjectResponse, ProjectUpdate
from src.db.connection import get_db
from src.services.dashboard_service import DashboardService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


def _get_service(db: Session = Depends(get_db)) -> DashboardService:
    """Dependency injector for DashboardService."""
    return DashboardService(db)


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: str,
    service: DashboardService = Depends(_get_service),
) -> ProjectResponse:
    """Get a project by ID."""
    return ProjectResponse.model_validate(service.get_project(project_id))


@router.api_route("/{project_id}", methods=["PUT", "PATCH"], response_model=ProjectResponse)
def update_project(
    project_id: str,
    data: ProjectUpdate,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> ProjectResponse:
    """Update a project's name, description or status.

    PUT and PATCH behave the same: fields left out of the body keep
    their current values.
    """
    updates = data.model_dump(exclude_unset=True)
    project = service.update_project(
        project_id,
        name=updates.get("name"),
        description=updates.get("description"),
        status=updates.get("status"),
    )
    db.commit()
    return ProjectResponse.model_validate(project)


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: str,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> None:
    """Delete a project with all of its dashboards."""
    service.delete_project(project_id)
    db.commit()
