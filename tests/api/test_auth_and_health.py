"""Tests for optional API-key auth and the health endpoints."""

import pytest
from fastapi.testclient import TestClient

from src.api.middleware.auth import _AUTH_FAIL_MAX, validate_api_key_strength

API_KEY = "a" * 32 + "-test-key"


def test_api_auth_disabled_by_default(client: TestClient, monkeypatch):
    monkeypatch.delenv("EPESI_API_KEY", raising=False)

    response = client.get("/api/v1/organizations")
    assert response.status_code == 200


def test_api_auth_enforced_when_key_is_set(client: TestClient, monkeypatch):
    monkeypatch.setenv("EPESI_API_KEY", API_KEY)

    response = client.get("/api/v1/organizations")
    assert response.status_code == 401
    assert response.json()["error_code"] == "E-5001"

    response = client.get("/api/v1/organizations", headers={"X-API-Key": "wrong"})
    assert response.status_code == 401

    response = client.get("/api/v1/organizations", headers={"X-API-Key": API_KEY})
    assert response.status_code == 200


def test_repeated_failures_are_rate_limited(client: TestClient, monkeypatch):
    monkeypatch.setenv("EPESI_API_KEY", API_KEY)

    for _ in range(_AUTH_FAIL_MAX):
        assert client.get("/api/v1/organizations").status_code == 401
    assert client.get("/api/v1/organizations").status_code == 429


def test_health_and_readyz_are_public(client: TestClient, monkeypatch):
    monkeypatch.setenv("EPESI_API_KEY", API_KEY)

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"
    assert client.get("/readyz").status_code in {200, 503}


def test_readyz_reports_missing_generation_key(client: TestClient, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    response = client.get("/readyz")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["checks"]["database"]["status"] == "ok"


def test_readyz_ready_with_generation_key(client: TestClient, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    assert client.get("/readyz").json()["status"] == "ready"


class TestApiKeyStrength:
    def test_short_api_key_rejected_at_startup(self, monkeypatch):
        monkeypatch.setenv("EPESI_API_KEY", "too-short")
        with pytest.raises(ValueError, match="too short"):
            validate_api_key_strength()

    def test_valid_length_api_key_accepted(self, monkeypatch):
        monkeypatch.setenv("EPESI_API_KEY", "a" * 32)
        validate_api_key_strength()

    def test_empty_api_key_skips_validation(self, monkeypatch):
        monkeypatch.delenv("EPESI_API_KEY", raising=False)
        validate_api_key_strength()
