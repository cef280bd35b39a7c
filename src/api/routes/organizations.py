"""API routes for organizations and their projects and data sources.

All endpoints use the /api/v1/organizations prefix. Domain errors raised
by the services are translated by the application's DomainError handler.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.middleware.auth import get_current_user_id
from src.api.routes.data_sources import data_source_to_response
from src.api.schemas import (
    DataSourceCreate,
    DataSourceResponse,
    OrganizationCreate,
    OrganizationResponse,
    ProjectCreate,
    ProjectResponse,
)
from src.db.connection import get_db
from src.services.dashboard_service import DashboardService
from src.services.data_source_service import DataSourceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


def _get_service(db: Session = Depends(get_db)) -> DashboardService:
    """Dependency injector for DashboardService."""
    return DashboardService(db)


@router.post("", response_model=OrganizationResponse, status_code=201)
def create_organization(
    data: OrganizationCreate,
    service: DashboardService = Depends(_get_service),
    db: Session = Depends(get_db),
) -> OrganizationResponse:
    """Create an organization."""
    org = service.create_organization(data.name)
    db.commit()
    return OrganizationResponse.model_validate(org)


@router.get("", response_model=list[OrganizationResponse])
def list_organizations(
    service: DashboardService = Depends(_get_service),
) -> list[OrganizationResponse]:
    """List all organizations."""
    return [OrganizationResponse.model_validate(o) for o in service.list_organizations()]


@router.get("/{organization_id}", response_model=OrganizationResponse)
def get_organization(
    organization_id: str,
    service: DashboardService = Depends(_get_service),
) -> OrganizationResponse:
    """Get an organization by ID."""
    return OrganizationResponse.model_validate(service.get_organization(organization_id))


@router.post("/{organization_id}/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    organization_id: str,
    data: ProjectCreate,
    service: DashboardService = Depends(_get_service),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ProjectResponse:
    """Create a project in an organization."""
    project = service.create_project(
        organization_id, data.name, description=data.description, user_id=user_id
    )
    db.commit()
    return ProjectResponse.model_validate(project)


@router.get("/{organization_id}/projects", response_model=list[ProjectResponse])
def list_projects(
    organization_id: str,
    service: DashboardService = Depends(_get_service),
) -> list[ProjectResponse]:
    """List an organization's projects."""
    return [ProjectResponse.model_validate(p) for p in service.list_projects(organization_id)]


@router.post(
    "/{organization_id}/data-sources",
    response_model=DataSourceResponse,
    status_code=201,
)
def upload_data_source(
    organization_id: str,
    data: DataSourceCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DataSourceResponse:
    """Upload CSV text or JSON records as a data source.

    The content is normalized on intake; unreadable content returns 422.
    """
    source = DataSourceService(db).create_data_source(
        organization_id,
        name=data.name,
        raw=data.content,
        declared_format=data.format,
        user_id=user_id,
    )
    db.commit()
    return data_source_to_response(source)


@router.get("/{organization_id}/data-sources", response_model=list[DataSourceResponse])
def list_data_sources(
    organization_id: str,
    db: Session = Depends(get_db),
) -> list[DataSourceResponse]:
    """List an organization's data sources."""
    return [
        data_source_to_response(s)
        for s in DataSourceService(db).list_data_sources(organization_id)
    ]
