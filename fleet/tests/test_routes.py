"""Tests for the orchestrator HTTP API."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fleet.config import settings
from fleet.errors import NodeUnreachable
from fleet.main import app
from fleet.routers.orchestrator import get_control_client


@pytest.fixture
def client(fake_client):
    fake_client.add_node("node-a", "A")
    fake_client.add_node("node-b", "B")
    fake_client.add_container("node-a", "a1" * 32, "web", image="nginx:1.25")
    fake_client.add_container("node-b", "b1" * 32, "db", image="postgres:16")
    app.dependency_overrides[get_control_client] = lambda: fake_client
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_metrics_exposed(client):
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "fleet_scan_failures_total" in resp.text


def test_list_nodes(client):
    resp = client.get("/orchestrator/nodes")
    assert resp.status_code == 200
    nodes = resp.json()["nodes"]
    assert [(n["id"], n["display_name"], n["status"]) for n in nodes] == [
        ("node-a", "A", "connected"),
        ("node-b", "B", "connected"),
    ]


def test_scan(client):
    resp = client.post("/orchestrator/scan", json={"node_ids": ["node-a", "node-b"], "filter": "nginx"})
    assert resp.status_code == 200
    matches = resp.json()["matches"]
    assert len(matches) == 1
    assert matches[0]["node_id"] == "node-a"
    assert matches[0]["container"]["names"] == ["web"]


def test_scan_without_nodes_is_400(client):
    resp = client.post("/orchestrator/scan", json={"node_ids": [], "filter": ""})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "no nodes selected"


def test_scan_failure_is_502_with_node_errors(client, fake_client):
    fake_client.fail("list", "node-b", None, NodeUnreachable("agent offline"))

    resp = client.post("/orchestrator/scan", json={"node_ids": ["node-a", "node-b"]})

    assert resp.status_code == 502
    assert resp.json()["detail"]["node_errors"] == {"node-b": "agent offline"}


def test_bulk_delete(client, fake_client):
    resp = client.post("/orchestrator/bulk", json={
        "node_ids": ["node-a", "node-b"],
        "filter": "postgres",
        "action": "delete",
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["ok_count"] == 1
    assert body["failed_count"] == 0
    assert body["items"][0]["message"] == "deleted"
    assert body["items"][0]["stage"] == "done"
    assert fake_client.names_on("node-b") == []


def test_bulk_with_no_matches_is_400(client):
    resp = client.post("/orchestrator/bulk", json={
        "node_ids": ["node-a"], "filter": "nothing-matches", "action": "stop",
    })
    assert resp.status_code == 400


def test_migrate_requires_confirmation(client):
    resp = client.post("/orchestrator/migrate", json={
        "source_node_id": "node-a", "target_node_id": "node-b",
    })
    assert resp.status_code == 400
    assert resp.json()["detail"] == "migration not confirmed"


def test_migrate_copy(client, fake_client):
    resp = client.post("/orchestrator/migrate", json={
        "source_node_id": "node-a",
        "target_node_id": "node-b",
        "keep_source": True,
        "confirmed": True,
    })

    assert resp.status_code == 200
    assert resp.json()["items"][0]["message"] == "created on B as web; source kept"
    assert "web" in fake_client.names_on("node-b")


class TestOperatorAuth:

    def test_valid_bearer_token(self, client, monkeypatch):
        monkeypatch.setattr(settings, "operator_secret", "test-secret")
        resp = client.get("/orchestrator/nodes", headers={"Authorization": "Bearer test-secret"})
        assert resp.status_code == 200

    def test_invalid_bearer_token(self, client, monkeypatch):
        monkeypatch.setattr(settings, "operator_secret", "test-secret")
        resp = client.get("/orchestrator/nodes", headers={"Authorization": "Bearer wrong"})
        assert resp.status_code == 403
        assert "Invalid operator authorization" in resp.json()["detail"]

    def test_missing_authorization_header(self, client, monkeypatch):
        monkeypatch.setattr(settings, "operator_secret", "test-secret")
        resp = client.get("/orchestrator/nodes")
        assert resp.status_code == 403
        assert "Missing operator authorization" in resp.json()["detail"]

    def test_health_is_exempt(self, client, monkeypatch):
        monkeypatch.setattr(settings, "operator_secret", "test-secret")
        assert client.get("/health").status_code == 200
