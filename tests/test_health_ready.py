from __future__ import annotations

from fastapi.testclient import TestClient

from apps.dispatch_backend.main import app

client = TestClient(app)


def test_health_ready():
    r = client.get("/readyz")
    assert r.status_code == 200
    assert r.json().get("ok") is True


def test_health_endpoints():
    for path in ("/healthz", "/health/live", "/health/ready"):
        assert client.get(path).status_code == 200


def test_request_id_is_echoed():
    r = client.get("/healthz", headers={"X-Request-Id": "abc123"})
    assert r.headers["X-Request-Id"] == "abc123"
    assert client.get("/healthz").headers["X-Request-Id"]
