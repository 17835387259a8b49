from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_returns_ok(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    # In tests neither backing service is configured
    assert data["checks"] == {"database": "not_configured", "redis": "not_configured"}


def test_ready_returns_200(client: TestClient) -> None:
    resp = client.get("/ready")
    assert resp.status_code == 200


def test_metrics_exposes_timeline_counters(client: TestClient) -> None:
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert "timeline_demotions_total" in resp.text
    assert "timeline_job_duration_seconds" in resp.text
