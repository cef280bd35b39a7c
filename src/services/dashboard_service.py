"""Service for the organization/project/dashboard hierarchy.

Thin CRUD over the tenancy tables. Methods flush but do NOT call
db.commit(); the caller (route or CLI) commits.

Example:
    svc = DashboardService(db)
    org = svc.create_organization("Acme")
    project = svc.create_project(org.id, "Q3 review")
    dashboard = svc.create_dashboard(project.id, "Revenue", user_id="u-1")
    db.commit()
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.db.models import (
    Dashboard,
    DataSource,
    Organization,
    Project,
    ProjectStatus,
    utc_now_iso,
)
from src.errors.domain import (
    DashboardNotFoundError,
    OrganizationNotFoundError,
    ProjectNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _require_name(name: str, what: str) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValidationError(f"{what} name is required")
    if len(clean) > 255:
        raise ValidationError(f"{what} name must be at most 255 characters")
    return clean


class DashboardService:
    """CRUD operations for organizations, projects and dashboards."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # Organizations

    def create_organization(self, name: str) -> Organization:
        org = Organization(name=_require_name(name, "Organization"))
        self.db.add(org)
        self.db.flush()
        logger.info("Created organization %s (%s)", org.id, org.name)
        return org

    def get_organization(self, organization_id: str) -> Organization:
        org = self.db.get(Organization, organization_id)
        if org is None:
            raise OrganizationNotFoundError(organization_id)
        return org

    def list_organizations(self) -> list[Organization]:
        return list(
            self.db.execute(select(Organization).order_by(Organization.created_at)).scalars()
        )

    # Projects

    def create_project(
        self,
        organization_id: str,
        name: str,
        description: str | None = None,
        user_id: str | None = None,
    ) -> Project:
        """Create a project inside an organization.

        Raises:
            OrganizationNotFoundError: If the organization does not exist.
            ValidationError: If the name is blank or too long.
        """
        self.get_organization(organization_id)
        project = Project(
            organization_id=organization_id,
            name=_require_name(name, "Project"),
            description=description,
            created_by_id=user_id,
        )
        self.db.add(project)
        self.db.flush()
        logger.info("Created project %s in organization %s", project.id, organization_id)
        return project

    def get_project(self, project_id: str) -> Project:
        project = self.db.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def list_projects(self, organization_id: str) -> list[Project]:
        self.get_organization(organization_id)
        stmt = (
            select(Project)
            .where(Project.organization_id == organization_id)
            .order_by(Project.created_at)
        )
        return list(self.db.execute(stmt).scalars())

    def update_project(
        self,
        project_id: str,
        name: str | None = None,
        description: str | None = None,
        status: ProjectStatus | str | None = None,
    ) -> Project:
        """Partially update a project. Fields left as None are unchanged.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            ValidationError: On a blank name or an unknown status.
        """
        project = self.get_project(project_id)
        if name is not None:
            project.name = _require_name(name, "Project")
        if description is not None:
            project.description = description
        if status is not None:
            try:
                project.status = ProjectStatus(status).value
            except ValueError as e:
                raise ValidationError(f"Invalid project status: {status!r}") from e
        project.updated_at = utc_now_iso()
        self.db.flush()
        return project

    def delete_project(self, project_id: str) -> None:
        """Delete a project together with its dashboards."""
        project = self.get_project(project_id)
        self.db.delete(project)
        self.db.flush()
        logger.info("Deleted project %s", project_id)

    def overview_stats(self, organization_id: str) -> dict[str, int]:
        """Count an organization's active projects, dashboards and data sources."""
        self.get_organization(organization_id)
        active_projects = self.db.execute(
            select(func.count(Project.id)).where(
                Project.organization_id == organization_id,
                Project.status == ProjectStatus.active.value,
            )
        ).scalar_one()
        total_dashboards = self.db.execute(
            select(func.count(Dashboard.id))
            .join(Project, Dashboard.project_id == Project.id)
            .where(Project.organization_id == organization_id)
        ).scalar_one()
        data_sources = self.db.execute(
            select(func.count(DataSource.id)).where(DataSource.organization_id == organization_id)
        ).scalar_one()
        return {
            "active_projects": active_projects,
            "total_dashboards": total_dashboards,
            "data_sources": data_sources,
        }

    # Dashboards

    def create_dashboard(
        self,
        project_id: str,
        name: str,
        description: str | None = None,
        is_public: bool = False,
        user_id: str | None = None,
    ) -> Dashboard:
        """Create an empty dashboard in a project.

        Raises:
            ProjectNotFoundError: If the project does not exist.
            ValidationError: If the name is blank or too long.
        """
        self.get_project(project_id)
        dashboard = Dashboard(
            project_id=project_id,
            name=_require_name(name, "Dashboard"),
            description=description,
            is_public=is_public,
            created_by_id=user_id,
        )
        self.db.add(dashboard)
        self.db.flush()
        logger.info("Created dashboard %s in project %s", dashboard.id, project_id)
        return dashboard

    def get_dashboard(self, dashboard_id: str, touch: bool = False) -> Dashboard:
        """Fetch a dashboard.

        Args:
            dashboard_id: Dashboard UUID.
            touch: Record the access in ``last_accessed_at``.

        Raises:
            DashboardNotFoundError: If the dashboard does not exist.
        """
        dashboard = self.db.get(Dashboard, dashboard_id)
        if dashboard is None:
            raise DashboardNotFoundError(dashboard_id)
        if touch:
            dashboard.last_accessed_at = utc_now_iso()
            self.db.flush()
        return dashboard

    def record_access(self, dashboard_id: str) -> Dashboard:
        """Stamp ``last_accessed_at`` without changing ``updated_at``."""
        return self.get_dashboard(dashboard_id, touch=True)

    def list_dashboards(self, project_id: str) -> list[Dashboard]:
        self.get_project(project_id)
        stmt = (
            select(Dashboard)
            .where(Dashboard.project_id == project_id)
            .order_by(Dashboard.updated_at.desc())
        )
        return list(self.db.execute(stmt).scalars())

    def update_dashboard(
        self,
        dashboard_id: str,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
    ) -> Dashboard:
        dashboard = self.get_dashboard(dashboard_id)
        if name is not None:
            dashboard.name = _require_name(name, "Dashboard")
        if description is not None:
            dashboard.description = description
        if is_public is not None:
            dashboard.is_public = is_public
        dashboard.updated_at = utc_now_iso()
        self.db.flush()
        return dashboard

    def delete_dashboard(self, dashboard_id: str) -> None:
        """Delete a dashboard with its blocks, chat history and conversations."""
        dashboard = self.get_dashboard(dashboard_id)
        self.db.delete(dashboard)
        self.db.flush()
        logger.info("Deleted dashboard %s", dashboard_id)

    def organization_id_for_dashboard(self, dashboard_id: str) -> str:
        """Resolve the organization that owns a dashboard's data."""
        dashboard = self.get_dashboard(dashboard_id)
        return dashboard.project.organization_id
