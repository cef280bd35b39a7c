"""Pytest fixtures for API tests.

Provides a test client over an in-memory database, a scripted generation
backend, and seeded tenancy fixtures for testing FastAPI endpoints.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.main import app
from src.api.middleware.auth import reset_rate_limiter
from src.db.connection import get_db
from src.db.models import Base
from src.orchestrator.nl_engine.gateway import ChartGenerationGateway
from src.services.gateway_provider import get_generation_gateway
from tests.helpers import FakeBackend


@pytest.fixture
def test_db() -> Generator[Session, None, None]:
    """Create an in-memory SQLite database for testing.

    Creates all tables, yields a session, and cleans up after test.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def api_backend() -> FakeBackend:
    """Scripted backend behind the app's generation gateway."""
    return FakeBackend()


@pytest.fixture
def client(test_db: Session, api_backend: FakeBackend) -> Generator[TestClient, None, None]:
    """Create a TestClient with overridden database and gateway dependencies.

    Args:
        test_db: Test database session fixture.
        api_backend: Scripted generation backend.

    Yields:
        TestClient configured for testing.
    """

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    gateway = ChartGenerationGateway(backend=api_backend, timeout=2.0, max_retries=1)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generation_gateway] = lambda: gateway
    reset_rate_limiter()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    reset_rate_limiter()


@pytest.fixture
def org_id(client: TestClient) -> str:
    response = client.post("/api/v1/organizations", json={"name": "Acme Analytics"})
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def project_id(client: TestClient, org_id: str) -> str:
    response = client.post(
        f"/api/v1/organizations/{org_id}/projects", json={"name": "Quarterly Review"}
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def dashboard_id(client: TestClient, project_id: str) -> str:
    response = client.post(
        "/api/v1/dashboards",
        json={"project_id": project_id, "name": "Revenue"},
        headers={"X-User-Id": "user-1"},
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def sales_source_id(client: TestClient, org_id: str) -> str:
    response = client.post(
        f"/api/v1/organizations/{org_id}/data-sources",
        json={
            "name": "Regional Sales",
            "content": "region,revenue\nNorth,1200\nSouth,800\nEast,950\nWest,1500\n",
        },
    )
    assert response.status_code == 201
    return response.json()["id"]
