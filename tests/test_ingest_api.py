"""Tests de la API HTTP de ingesta.

- POST /api/v1/data/sensor: 201 aceptada, 200 duplicada, 400 nombrando el campo
- Autenticación por API key (401 / 403)
- Replay por X-Idempotency-Key
- POST /api/v1/data/ingest: rate limit por sensor en Redis (429, fail open)
- Fallo del almacén o error inesperado: 500 sin efectos secundarios
- Flujo completo lectura -> alerta -> broadcast
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from flood_ingest.core.domain.alert import AlertStatus, AlertType
from flood_ingest.infrastructure.persistence.tables import sensor_readings
from flood_ingest.main import create_app

SENSOR_URL = "/api/v1/data/sensor"
LEGACY_URL = "/api/v1/data/ingest"


def _payload(base, **overrides):
    payload = dict(base)
    payload.update(overrides)
    return payload


# =============================================================================
# INGESTA
# =============================================================================

class TestIngestSensor:

    def test_accepted(self, client, container, auth_headers, legacy_payload):
        response = client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        assert body["reading_id"]
        assert body["received_at"].endswith("Z")
        assert container.ingestion.stats.to_dict()["accepted"] == 1

    def test_duplicate_is_not_an_error(self, client, auth_headers, legacy_payload):
        client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)
        response = client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["deduplicated"] is True
        assert body["message"] == "Duplicate reading, skipped"

    def test_ttgo_payload(self, client, container, auth_headers, now_ms):
        payload = {
            "sensor_id": "SENSOR_TTGO",
            "gateway_id": "GATEWAY_TTGO",
            "timestamp": now_ms,
            "nivel_m": 1.5,
            "caudal_l_s": 0.5,
            "lluvia_mm": 2,
            "seq": 7,
        }
        assert client.post(SENSOR_URL, json=payload, headers=auth_headers).status_code == 201

        response = client.get("/api/v1/data/status/SENSOR_TTGO")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["water_level_cm"] == 150
        assert data["flow_rate_lmin"] == 30
        assert data["payload_format"] == "ttgo"

    def test_out_of_range_names_field(self, client, auth_headers, legacy_payload):
        response = client.post(
            SENSOR_URL, json=_payload(legacy_payload, water_level_cm=501), headers=auth_headers
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["field"] == "water_level_cm"

    def test_huge_integer_is_a_validation_error(self, client, auth_headers, legacy_payload):
        response = client.post(
            SENSOR_URL, json=_payload(legacy_payload, water_level_cm=10 ** 400), headers=auth_headers
        )
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["field"] == "water_level_cm"

    def test_huge_integer_timestamp(self, client, auth_headers, legacy_payload):
        response = client.post(
            SENSOR_URL, json=_payload(legacy_payload, timestamp=10 ** 400), headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["field"] == "timestamp"

    def test_missing_sensor_id(self, client, auth_headers, legacy_payload):
        payload = dict(legacy_payload)
        del payload["sensor_id"]
        response = client.post(SENSOR_URL, json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["field"] == "sensor_id"

    def test_reading_broadcast(self, client, broadcaster, auth_headers, legacy_payload):
        response = client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)
        reading_id = response.json()["reading_id"]

        [(_, data, room)] = broadcaster.named("reading:update")
        assert room == "sensor:SENSOR_001"
        assert data["reading_id"] == reading_id
        assert len(broadcaster.named("sensor:data")) == 1

    def test_gateway_bookkeeping(self, client, auth_headers, legacy_payload):
        client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)
        response = client.get("/api/v1/data/gateway/GATEWAY_001/info")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "online"
        assert data["reading_count"] == 1


class TestAuth:

    def test_missing_key(self, client, legacy_payload):
        response = client.post(SENSOR_URL, json=legacy_payload)
        assert response.status_code == 401
        assert response.json()["code"] == "MISSING_API_KEY"

    def test_wrong_key(self, client, legacy_payload):
        response = client.post(
            SENSOR_URL, json=legacy_payload, headers={"Authorization": "Bearer nope"}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "INVALID_API_KEY"

    def test_x_api_key_header(self, client, api_key, legacy_payload):
        response = client.post(SENSOR_URL, json=legacy_payload, headers={"X-API-Key": api_key})
        assert response.status_code == 201

    def test_admin_endpoint_rejects_api_key(self, client, auth_headers):
        response = client.put(
            "/api/v1/config/sensors/SENSOR_001", json={"enabled": True}, headers=auth_headers
        )
        assert response.status_code == 401


class TestIdempotency:

    def test_replay_returns_cached_body(self, client, container, auth_headers, legacy_payload):
        headers = dict(auth_headers, **{"X-Idempotency-Key": "req-123"})
        first = client.post(SENSOR_URL, json=legacy_payload, headers=headers)
        assert first.status_code == 201

        second = client.post(
            SENSOR_URL, json=_payload(legacy_payload, water_level_cm=10), headers=headers
        )
        assert second.status_code == 200
        assert second.json() == first.json()
        assert container.ingestion.stats.to_dict()["accepted"] == 1


class TestRateLimit:

    def _fill_window(self, client, auth_headers, legacy_payload, count):
        base_ts = legacy_payload["timestamp"]
        for i in range(count):
            payload = _payload(legacy_payload, timestamp=base_ts - i * 10_000)
            assert client.post(LEGACY_URL, json=payload, headers=auth_headers).status_code == 201

    def test_legacy_endpoint_limits_per_sensor(self, client, auth_headers, legacy_payload):
        self._fill_window(client, auth_headers, legacy_payload, 20)

        response = client.post(
            LEGACY_URL,
            json=_payload(legacy_payload, timestamp=legacy_payload["timestamp"] + 10_000),
            headers=auth_headers,
        )
        assert response.status_code == 429
        body = response.json()
        assert body["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["retryAfter"] == 60
        assert response.headers["Retry-After"] == "60"

    def test_other_sensor_not_affected(self, client, auth_headers, legacy_payload):
        self._fill_window(client, auth_headers, legacy_payload, 20)
        response = client.post(
            LEGACY_URL, json=_payload(legacy_payload, sensor_id="SENSOR_002"), headers=auth_headers
        )
        assert response.status_code == 201

    def test_window_expires(self, client, clock, auth_headers, legacy_payload):
        self._fill_window(client, auth_headers, legacy_payload, 20)
        clock.advance(61)
        response = client.post(
            LEGACY_URL,
            json=_payload(legacy_payload, timestamp=legacy_payload["timestamp"] + 10_000),
            headers=auth_headers,
        )
        assert response.status_code == 201

    def test_counter_shared_through_cache(self, client, fake_redis, auth_headers, legacy_payload):
        client.post(LEGACY_URL, json=legacy_payload, headers=auth_headers)
        assert fake_redis.get("rate:SENSOR_001") == "1"

    def test_cache_down_does_not_limit(self, cacheless_client, auth_headers, legacy_payload):
        base_ts = legacy_payload["timestamp"]
        for i in range(25):
            payload = _payload(legacy_payload, timestamp=base_ts - i * 10_000)
            response = cacheless_client.post(LEGACY_URL, json=payload, headers=auth_headers)
            assert response.status_code == 201

    def test_sensor_endpoint_not_limited_per_client(self, client, auth_headers, legacy_payload):
        # Un gateway reenvía lecturas de muchos sensores desde la misma IP.
        for i in range(105):
            payload = _payload(legacy_payload, sensor_id=f"SENSOR_{i:03d}")
            assert client.post(SENSOR_URL, json=payload, headers=auth_headers).status_code == 201

    def test_sensor_endpoint_has_no_per_sensor_limit(self, client, auth_headers, legacy_payload):
        base_ts = legacy_payload["timestamp"]
        for i in range(25):
            payload = _payload(legacy_payload, timestamp=base_ts - i * 10_000)
            assert client.post(SENSOR_URL, json=payload, headers=auth_headers).status_code == 201


class TestStorageFailure:

    def test_store_down_returns_500_without_side_effects(
        self, client, container, engine, broadcaster, auth_headers, legacy_payload
    ):
        sensor_readings.drop(engine)
        response = client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["code"] == "INGEST_ERROR"
        assert broadcaster.events == []
        assert container.processor.metrics["enqueued"] == 0
        assert container.ingestion.stats.to_dict()["failed"] == 1

    def test_unexpected_error_returns_json_500(
        self, settings, container, auth_headers, legacy_payload, monkeypatch
    ):
        def boom(payload):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(container.ingestion, "ingest", boom)
        app = create_app(settings, container)
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.post(SENSOR_URL, json=legacy_payload, headers=auth_headers)

        assert response.status_code == 500
        assert response.json() == {
            "ok": False,
            "error": "Internal server error",
            "code": "INGEST_ERROR",
        }


# =============================================================================
# FLUJO COMPLETO
# =============================================================================

class TestEndToEnd:

    def test_critical_reading_creates_and_broadcasts_alert(
        self, client, container, broadcaster, auth_headers, admin_headers, legacy_payload
    ):
        config = {"name": "Río Medellín", "thresholds": {"water_level_critical_cm": 450}}
        response = client.put("/api/v1/config/sensors/SENSOR_001", json=config, headers=admin_headers)
        assert response.status_code == 200

        response = client.post(
            SENSOR_URL, json=_payload(legacy_payload, water_level_cm=480), headers=auth_headers
        )
        assert response.status_code == 201
        container.processor.drain(timeout=5)

        [alert] = container.alerts.list_alerts(sensor_id="SENSOR_001")
        assert alert.type is AlertType.WATER_LEVEL_CRITICAL
        assert alert.status is AlertStatus.ACTIVE
        assert alert.value == 480
        assert alert.threshold == 450
        assert alert.message == "Critical water level: 480cm (threshold: 450cm)"

        rooms = {room for _, _, room in broadcaster.named("alert:new")}
        assert rooms == {"sensor:SENSOR_001", "alerts"}

        listed = client.get("/api/v1/alerts", params={"sensor_id": "SENSOR_001"}).json()
        assert listed["count"] == 1
        assert listed["data"][0]["id"] == alert.id

    def test_operator_acknowledges_and_resolves(
        self, client, container, broadcaster, auth_headers, admin_headers, legacy_payload
    ):
        client.put(
            "/api/v1/config/sensors/SENSOR_001",
            json={"thresholds": {"water_level_critical_cm": 450}},
            headers=admin_headers,
        )
        client.post(SENSOR_URL, json=_payload(legacy_payload, water_level_cm=480), headers=auth_headers)
        container.processor.drain(timeout=5)
        [alert] = container.alerts.list_alerts(sensor_id="SENSOR_001")

        response = client.post(
            f"/api/v1/alerts/{alert.id}/acknowledge", json={"user": "operador"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ACKNOWLEDGED"
        assert len(broadcaster.named("alert:acknowledged")) == 1

        response = client.post(
            f"/api/v1/alerts/{alert.id}/acknowledge", json={"user": "otro"}, headers=auth_headers
        )
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"
        assert len(broadcaster.named("alert:acknowledged")) == 1

        response = client.post(f"/api/v1/alerts/{alert.id}/resolve", headers=auth_headers)
        assert response.json()["data"]["status"] == "RESOLVED"

        response = client.post(f"/api/v1/alerts/{alert.id}/resolve", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    def test_unknown_alert_is_404(self, client, auth_headers):
        response = client.post("/api/v1/alerts/nope/resolve", headers=auth_headers)
        assert response.status_code == 404
