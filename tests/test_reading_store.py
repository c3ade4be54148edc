"""Tests del almacén de lecturas y del bookkeeping de gateways."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from flood_ingest.common.timeutils import utc_now
from flood_ingest.core.domain.sensor_config import Location
from flood_ingest.core.validation import normalize_payload
from flood_ingest.errors import StorageError
from flood_ingest.ingest.gateway_repository import STATUS_OFFLINE, STATUS_ONLINE, GatewayRepository
from flood_ingest.ingest.reading_repository import ReadingStore
from flood_ingest.infrastructure.persistence.tables import sensor_readings
from flood_ingest.queries import get_latest_reading


@pytest.fixture
def gateways(engine):
    return GatewayRepository(engine)


@pytest.fixture
def store(engine, gateways):
    return ReadingStore(engine, gateways)


@pytest.fixture
def reading(legacy_payload):
    return normalize_payload(legacy_payload, received_at=utc_now())


class TestReadingStore:

    def test_save_assigns_id_and_persists(self, engine, store, reading):
        stored = store.save(reading)
        assert stored.reading_id

        with engine.connect() as conn:
            latest = get_latest_reading(conn, reading.sensor_id)
        assert latest.reading_id == stored.reading_id
        assert latest.water_level == reading.water_level
        assert latest.timestamp == reading.timestamp
        assert latest.signal.rssi == -95

    def test_insert_failure_raises_storage_error(self, engine, store, reading):
        sensor_readings.drop(engine)
        with pytest.raises(StorageError):
            store.save(reading)

    def test_gateway_failure_does_not_undo_reading(self, engine, store, gateways, reading, monkeypatch):
        from sqlalchemy.exc import OperationalError

        def boom(*args, **kwargs):
            raise OperationalError("UPDATE gateways", {}, Exception("locked"))

        monkeypatch.setattr(gateways, "upsert_seen", boom)
        stored = store.save(reading)

        with engine.connect() as conn:
            assert get_latest_reading(conn, reading.sensor_id).reading_id == stored.reading_id


class TestGatewayBookkeeping:

    def test_first_reading_auto_registers(self, store, gateways, reading):
        store.save(reading)
        gw = gateways.get("GATEWAY_001")
        assert gw.status == STATUS_ONLINE
        assert gw.reading_count == 1

    def test_count_increments(self, store, gateways, reading):
        for i in range(3):
            store.save(replace(reading, timestamp=reading.timestamp + timedelta(seconds=i * 10)))
        assert gateways.get("GATEWAY_001").reading_count == 3

    def test_last_seen_never_moves_backwards(self, gateways):
        now = utc_now()
        gateways.upsert_seen("GW_X", now)
        gateways.upsert_seen("GW_X", now - timedelta(minutes=5))
        gw = gateways.get("GW_X")
        assert abs((gw.last_seen - now).total_seconds()) < 0.001
        assert gw.reading_count == 2

    def test_register_then_seen(self, gateways):
        gw = gateways.register("GW_NEW", name="Puente Norte", location=Location(4.6, -74.1))
        assert gw.status == STATUS_OFFLINE
        assert gw.reading_count == 0
        assert gw.location == Location(4.6, -74.1)

        gateways.upsert_seen("GW_NEW")
        gw = gateways.get("GW_NEW")
        assert gw.status == STATUS_ONLINE
        assert gw.name == "Puente Norte"

    def test_register_without_name_keeps_existing(self, gateways):
        gateways.register("GW_NEW", name="Puente Norte")
        gw = gateways.register("GW_NEW", location=Location(4.6, -74.1))
        assert gw.name == "Puente Norte"
        assert gw.location == Location(4.6, -74.1)

        gw = gateways.register("GW_NEW")
        assert gw.name == "Puente Norte"
        assert gw.location == Location(4.6, -74.1)

    def test_register_new_without_name(self, gateways):
        gw = gateways.register("GW_ANON")
        assert gw.name is None
        assert gw.status == STATUS_OFFLINE

    def test_mark_stale_offline(self, gateways):
        now = utc_now()
        gateways.upsert_seen("GW_OLD", now - timedelta(hours=1))
        gateways.upsert_seen("GW_FRESH", now)

        assert gateways.mark_stale_offline(900, now=now) == 1
        assert gateways.get("GW_OLD").status == STATUS_OFFLINE
        assert gateways.get("GW_FRESH").status == STATUS_ONLINE

    def test_list_all_most_recent_first(self, gateways):
        now = utc_now()
        gateways.upsert_seen("GW_A", now - timedelta(minutes=10))
        gateways.upsert_seen("GW_B", now)
        gateways.register("GW_C")
        assert [g.gateway_id for g in gateways.list_all()] == ["GW_B", "GW_A", "GW_C"]
