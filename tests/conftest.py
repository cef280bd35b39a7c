"""Root-level pytest fixtures for all tests.

Provides:
- An in-memory SQLite session with foreign keys enforced
- Seeded organization/project/dashboard fixtures
- A scripted fake generation backend and a gateway around it
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from src.db.models import Base, Dashboard, DataSource, Organization, Project
from src.orchestrator.nl_engine.gateway import ChartGenerationGateway
from src.services.dashboard_service import DashboardService
from src.services.data_source_service import DataSourceService
from tests.helpers import FakeBackend

PROJECT_ROOT = Path(__file__).parent.parent


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers and isolate the application database."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )

    # The app engine is created on import; keep it away from the user's
    # data directory.
    if not os.environ.get("DATABASE_URL"):
        tmp_dir = tempfile.mkdtemp(prefix="epesi-tests-")
        os.environ["DATABASE_URL"] = f"sqlite:///{tmp_dir}/epesi-test.db"
    os.environ.pop("EPESI_API_KEY", None)


requires_anthropic_key = pytest.mark.skipif(
    not os.environ.get("ANTHROPIC_API_KEY"),
    reason="ANTHROPIC_API_KEY not set",
)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """In-memory SQLite session for testing."""
    engine = create_engine("sqlite:///:memory:")

    @event.listens_for(engine, "connect")
    def _fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def organization(db: Session) -> Organization:
    org = DashboardService(db).create_organization("Acme Analytics")
    db.commit()
    return org


@pytest.fixture
def project(db: Session, organization: Organization) -> Project:
    project = DashboardService(db).create_project(organization.id, "Quarterly Review")
    db.commit()
    return project


@pytest.fixture
def dashboard(db: Session, project: Project) -> Dashboard:
    """An empty, committed dashboard."""
    dashboard = DashboardService(db).create_dashboard(project.id, "Revenue", user_id="user-1")
    db.commit()
    return dashboard


@pytest.fixture
def sales_source(db: Session, organization: Organization) -> DataSource:
    """A committed CSV data source with four regions."""
    source = DataSourceService(db).create_data_source(
        organization.id,
        name="Regional Sales",
        raw="region,revenue,zip\nNorth,1200,02134\nSouth,800,30301\nEast,950,10001\nWest,1500,94105\n",
    )
    db.commit()
    return source


# ============================================================================
# Generation Fixtures
# ============================================================================


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Scripted backend with no responses queued."""
    return FakeBackend()


@pytest.fixture
def gateway(fake_backend: FakeBackend) -> ChartGenerationGateway:
    """Gateway over the fake backend with one retry, like production."""
    return ChartGenerationGateway(backend=fake_backend, timeout=2.0, max_retries=1)
