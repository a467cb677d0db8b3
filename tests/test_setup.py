"""
tests/test_setup.py -- First-run setup and database-unavailable behaviour.

These tests run the real lifespan from api/main.py with api.main.settings
swapped for a copy pointing at a throwaway database, so startup wiring is
exercised end to end.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

import api.main as api_main
from api.main import app, lifespan


def _client_with_database_url(monkeypatch: pytest.MonkeyPatch, database_url: str) -> TestClient:
    patched = api_main.settings.model_copy(update={"database_url": database_url})
    monkeypatch.setattr(api_main, "settings", patched)
    app.router.lifespan_context = lifespan
    return TestClient(app, raise_server_exceptions=True)


@pytest.fixture
def fresh_client(monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    url = f"sqlite:///file:test_setup_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    with _client_with_database_url(monkeypatch, url) as client:
        yield client


@pytest.fixture
def broken_client(monkeypatch: pytest.MonkeyPatch) -> Generator[TestClient, None, None]:
    with _client_with_database_url(monkeypatch, "nosuchdriver://db.invalid/profiledash") as client:
        yield client


class TestFirstRunSetup:
    def test_status_reports_setup_required(self, fresh_client: TestClient) -> None:
        resp = fresh_client.get("/api/v1/setup/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["database"] == "connected"
        assert body["setup_required"] is True
        assert body["blob_storage"] in ("local", "remote")

    def test_api_is_closed_until_setup(self, fresh_client: TestClient) -> None:
        resp = fresh_client.get("/api/v1/cards")
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "setup_required"
        assert fresh_client.get("/api/v1/health").status_code == 200

    def test_setup_creates_superadmin_once(self, fresh_client: TestClient) -> None:
        body = {"name": "Root", "email": "Root@Example.com", "password": "correct-horse"}
        created = fresh_client.post("/api/v1/setup", json=body)
        assert created.status_code == 201, created.text
        assert created.json()["role"] == "superadmin"
        assert created.json()["email"] == "root@example.com"

        again = fresh_client.post("/api/v1/setup", json={**body, "email": "other@example.com"})
        assert again.status_code == 409
        assert fresh_client.get("/api/v1/setup/status").json()["setup_required"] is False

        login = fresh_client.post(
            "/api/v1/auth/login", json={"email": "root@example.com", "password": "correct-horse"}
        )
        assert login.status_code == 200
        assert fresh_client.get("/api/v1/users").status_code == 200

    def test_account_created_outside_setup_reopens_api(self, fresh_client: TestClient) -> None:
        # Same effect as `python main.py create-user` or another worker's setup.
        fresh_client.app.state.user_store.create_user("Ops", "ops@example.com", "ops-password", "superadmin")

        again = fresh_client.post(
            "/api/v1/setup", json={"name": "Root", "email": "root@example.com", "password": "correct-horse"}
        )
        assert again.status_code == 409

        login = fresh_client.post("/api/v1/auth/login", json={"email": "ops@example.com", "password": "ops-password"})
        assert login.status_code == 200, login.text
        assert fresh_client.get("/api/v1/setup/status").json()["setup_required"] is False

    def test_guard_notices_account_created_outside_setup(self, fresh_client: TestClient) -> None:
        fresh_client.app.state.user_store.create_user("Ops", "ops@example.com", "ops-password", "superadmin")
        resp = fresh_client.get("/api/v1/cards")
        assert resp.status_code == 401
        assert fresh_client.app.state.setup_required is False

    def test_setup_rejects_short_password(self, fresh_client: TestClient) -> None:
        resp = fresh_client.post("/api/v1/setup", json={"name": "Root", "email": "r@example.com", "password": "short"})
        assert resp.status_code == 400


class TestDatabaseUnavailable:
    def test_status_reports_failure(self, broken_client: TestClient) -> None:
        body = broken_client.get("/api/v1/setup/status").json()
        assert body["database"] == "failed"
        assert body["database_error"]
        assert "nosuchdriver" not in body["database_error"]

    def test_other_routes_answer_503(self, broken_client: TestClient) -> None:
        for method, path in (("GET", "/api/v1/cards"), ("POST", "/api/v1/auth/login"), ("POST", "/api/v1/setup")):
            resp = broken_client.request(method, path, json={})
            assert resp.status_code == 503, path
            assert resp.json()["error"]["code"] == "database_unavailable"

    def test_health_reports_degraded(self, broken_client: TestClient) -> None:
        resp = broken_client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "degraded"
        assert resp.json()["components"]["database"] == "unavailable"
