"""Tests de health / readiness y de la degradación sin caché."""

from __future__ import annotations

from flood_ingest.infrastructure.persistence.tables import sensor_readings


class TestHealth:

    def test_liveness(self, client):
        body = client.get("/api/v1/health").json()
        assert body["ok"] is True
        assert body["timestamp"]

    def test_ready_healthy(self, client):
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["database"] == "ok"
        assert body["services"]["cache"] == "ok"

    def test_ready_store_down(self, client, container, monkeypatch):
        monkeypatch.setattr(container.health, "check_database", lambda: False)
        response = client.get("/api/v1/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_detailed(self, client, auth_headers, legacy_payload):
        client.post("/api/v1/data/sensor", json=legacy_payload, headers=auth_headers)
        body = client.get("/api/v1/health/detailed").json()
        assert body["data"]["readingsLastHour"] == 1
        assert body["data"]["latestReading"] is not None
        assert body["data"]["activeAlerts"] == 0
        assert body["ingest"]["accepted"] == 1
        assert "queue_depth" in body["alert_processor"]

    def test_detailed_store_error(self, client, engine):
        sensor_readings.drop(engine)
        response = client.get("/api/v1/health/detailed")
        assert response.status_code == 500
        assert response.json()["code"] == "HEALTH_ERROR"


class TestCacheUnavailable:

    def test_ready_reports_degraded(self, cacheless_client):
        response = cacheless_client.get("/api/v1/health/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["services"]["cache"] == "unavailable"

    def test_ingest_keeps_working_and_dedups_from_store(
        self, cacheless_client, auth_headers, legacy_payload
    ):
        first = cacheless_client.post("/api/v1/data/sensor", json=legacy_payload, headers=auth_headers)
        assert first.status_code == 201

        second = cacheless_client.post("/api/v1/data/sensor", json=legacy_payload, headers=auth_headers)
        assert second.status_code == 200
        assert second.json()["deduplicated"] is True
