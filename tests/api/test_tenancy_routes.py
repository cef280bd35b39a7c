"""Tests for organization, project, dashboard and data source endpoints."""

from fastapi.testclient import TestClient


class TestOrganizations:
    def test_create_and_list(self, client: TestClient, org_id: str):
        response = client.get("/api/v1/organizations")
        assert response.status_code == 200
        assert [o["id"] for o in response.json()] == [org_id]

    def test_blank_name_is_rejected(self, client: TestClient):
        response = client.post("/api/v1/organizations", json={"name": ""})
        assert response.status_code == 422

    def test_unknown_organization_uses_error_envelope(self, client: TestClient):
        response = client.get("/api/v1/organizations/missing")
        assert response.status_code == 404
        body = response.json()
        assert body["error_code"] == "E-2002"
        assert body["message"] == "Organization 'missing' not found."
        assert body["is_retryable"] is False
        assert body["remediation"]

    def test_projects_record_the_requesting_user(self, client: TestClient, org_id: str):
        response = client.post(
            f"/api/v1/organizations/{org_id}/projects",
            json={"name": "Board pack", "description": "Monthly"},
            headers={"X-User-Id": "analyst-7"},
        )
        assert response.status_code == 201
        assert response.json()["created_by_id"] == "analyst-7"

        listed = client.get(f"/api/v1/organizations/{org_id}/projects").json()
        assert [p["name"] for p in listed] == ["Board pack"]

    def test_anonymous_user_when_header_missing(self, client: TestClient, org_id: str):
        response = client.post(f"/api/v1/organizations/{org_id}/projects", json={"name": "P"})
        assert response.json()["created_by_id"] == "anonymous"


class TestDashboards:
    def test_create_get_update_delete(self, client: TestClient, project_id: str, dashboard_id: str):
        fetched = client.get(f"/api/v1/dashboards/{dashboard_id}")
        assert fetched.status_code == 200
        assert fetched.json()["created_by_id"] == "user-1"
        assert fetched.json()["last_accessed_at"] is not None

        updated = client.patch(f"/api/v1/dashboards/{dashboard_id}", json={"name": "Renamed"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "Renamed"

        listed = client.get("/api/v1/dashboards", params={"project_id": project_id})
        assert [d["id"] for d in listed.json()] == [dashboard_id]

        assert client.delete(f"/api/v1/dashboards/{dashboard_id}").status_code == 204
        assert client.get(f"/api/v1/dashboards/{dashboard_id}").status_code == 404

    def test_record_access(self, client: TestClient, project_id: str, dashboard_id: str):
        before = client.get("/api/v1/dashboards", params={"project_id": project_id}).json()[0]
        assert before["last_accessed_at"] is None

        response = client.patch(f"/api/v1/dashboards/{dashboard_id}/access")
        assert response.status_code == 200
        assert response.json()["last_accessed_at"] is not None
        assert response.json()["updated_at"] == before["updated_at"]

    def test_record_access_unknown_dashboard(self, client: TestClient):
        assert client.patch("/api/v1/dashboards/missing/access").status_code == 404

    def test_unknown_project(self, client: TestClient):
        response = client.post("/api/v1/dashboards", json={"project_id": "nope", "name": "X"})
        assert response.status_code == 404
        assert response.json()["error_code"] == "E-2002"


class TestProjects:
    def test_get_update_and_delete(self, client: TestClient, project_id: str, dashboard_id: str):
        fetched = client.get(f"/api/v1/projects/{project_id}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "active"

        patched = client.patch(f"/api/v1/projects/{project_id}", json={"status": "archived"})
        assert patched.status_code == 200
        assert patched.json()["status"] == "archived"
        assert patched.json()["name"] == "Quarterly Review"

        replaced = client.put(
            f"/api/v1/projects/{project_id}",
            json={"name": "Annual Review", "description": "FY figures", "status": "completed"},
        )
        assert replaced.status_code == 200
        assert replaced.json()["name"] == "Annual Review"
        assert replaced.json()["description"] == "FY figures"
        assert replaced.json()["status"] == "completed"

        assert client.delete(f"/api/v1/projects/{project_id}").status_code == 204
        assert client.get(f"/api/v1/projects/{project_id}").status_code == 404
        assert client.get(f"/api/v1/dashboards/{dashboard_id}").status_code == 404

    def test_unknown_status_is_rejected(self, client: TestClient, project_id: str):
        response = client.patch(f"/api/v1/projects/{project_id}", json={"status": "paused"})
        assert response.status_code == 422

    def test_unknown_project(self, client: TestClient):
        response = client.get("/api/v1/projects/missing")
        assert response.status_code == 404
        assert response.json()["error_code"] == "E-2002"
        assert client.delete("/api/v1/projects/missing").status_code == 404


class TestOverviewStats:
    def test_counts(self, client: TestClient, org_id: str, project_id: str, dashboard_id: str, sales_source_id: str):
        archived = client.post(f"/api/v1/organizations/{org_id}/projects", json={"name": "Old"}).json()
        client.patch(f"/api/v1/projects/{archived['id']}", json={"status": "archived"})
        client.post("/api/v1/dashboards", json={"project_id": archived["id"], "name": "Legacy"})

        response = client.get("/api/v1/stats/overview", params={"organization_id": org_id})
        assert response.status_code == 200
        assert response.json() == {
            "organization_id": org_id,
            "active_projects": 1,
            "total_dashboards": 2,
            "data_sources": 1,
        }

    def test_organization_id_is_required(self, client: TestClient):
        assert client.get("/api/v1/stats/overview").status_code == 422

    def test_unknown_organization(self, client: TestClient):
        response = client.get("/api/v1/stats/overview", params={"organization_id": "missing"})
        assert response.status_code == 404


class TestDataSources:
    def test_upload_csv(self, client: TestClient, org_id: str, sales_source_id: str):
        detail = client.get(f"/api/v1/data-sources/{sales_source_id}", params={"rows": 2})
        assert detail.status_code == 200
        body = detail.json()
        assert body["type"] == "csv"
        assert body["fields"] == ["region", "revenue"]
        assert body["row_count"] == 4
        assert body["sample"] == [
            {"region": "North", "revenue": "1200"},
            {"region": "South", "revenue": "800"},
        ]

        listed = client.get(f"/api/v1/organizations/{org_id}/data-sources").json()
        assert [s["id"] for s in listed] == [sales_source_id]
        assert "sample" not in listed[0]

    def test_upload_json_records(self, client: TestClient, org_id: str):
        response = client.post(
            f"/api/v1/organizations/{org_id}/data-sources",
            json={"name": "Orders", "content": [{"id": 1, "total": 9.5}, {"id": 2, "note": "late"}]},
        )
        assert response.status_code == 201
        assert response.json()["type"] == "json"
        assert response.json()["fields"] == ["id", "total", "note"]

    def test_unknown_format_is_unprocessable(self, client: TestClient, org_id: str):
        response = client.post(
            f"/api/v1/organizations/{org_id}/data-sources",
            json={"name": "Bad", "content": "a,b\n1,2", "format": "xml"},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "E-1001"

    def test_header_only_csv_is_empty(self, client: TestClient, org_id: str):
        response = client.post(
            f"/api/v1/organizations/{org_id}/data-sources",
            json={"name": "Headers", "content": "region,revenue\n"},
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "E-1002"
        assert "Headers" in response.json()["message"]

    def test_delete(self, client: TestClient, sales_source_id: str):
        assert client.delete(f"/api/v1/data-sources/{sales_source_id}").status_code == 204
        assert client.get(f"/api/v1/data-sources/{sales_source_id}").status_code == 404
