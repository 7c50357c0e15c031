from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import create_app


def test_routes_are_mounted_under_api_prefix(monkeypatch):
    import app.api.v1.health as health_module
    import app.main as main_module

    monkeypatch.setattr(main_module, "bootstrap", lambda: None)
    monkeypatch.setattr(health_module, "verify_database_connection", lambda: True)
    with TestClient(create_app()) as client:
        root = client.get("/")
        assert root.status_code == 200
        prefix = root.json()["api_prefix"]

        unauthenticated = client.get(f"{prefix}/suppliers/billing/summary")
        assert unauthenticated.status_code == 401

        health = client.get(f"{prefix}/health")
        assert health.status_code == 200
        assert health.json()["status"] == "ok"


def test_query_aliases_are_exposed(monkeypatch, patched_sessions, auth_header):
    import app.main as main_module

    monkeypatch.setattr(main_module, "bootstrap", lambda: None)
    with TestClient(create_app()) as client:
        prefix = client.get("/").json()["api_prefix"]
        response = client.get(
            f"{prefix}/admin/disputes",
            params={"status": "closed"},
            headers={"Authorization": auth_header("admin")},
        )
        assert response.status_code == 422
