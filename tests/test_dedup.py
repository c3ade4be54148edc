"""Tests de deduplicación de lecturas (caché primero, almacén como respaldo)."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from flood_ingest.common.timeutils import utc_now
from flood_ingest.core.redis.cache import EphemeralCache
from flood_ingest.core.validation import normalize_payload
from flood_ingest.ingest.dedup import DuplicateFilter, reading_key
from flood_ingest.ingest.gateway_repository import GatewayRepository
from flood_ingest.ingest.reading_repository import ReadingStore
from flood_ingest.infrastructure.persistence.tables import sensor_readings


@pytest.fixture
def reading(legacy_payload):
    return normalize_payload(legacy_payload, received_at=utc_now())


def _store(engine, dedup):
    return ReadingStore(engine, GatewayRepository(engine), dedup)


class TestDuplicateFilter:

    def test_new_reading_is_not_duplicate(self, engine, fake_redis, reading):
        dedup = DuplicateFilter(EphemeralCache(fake_redis), engine)
        assert dedup.check(reading).is_duplicate is False

    def test_cache_hit_after_save(self, engine, fake_redis, reading):
        dedup = DuplicateFilter(EphemeralCache(fake_redis), engine)
        _store(engine, dedup).save(reading)

        check = dedup.check(reading)
        assert check.is_duplicate is True
        assert check.source == "cache"
        assert fake_redis.get(reading_key(reading)) == "1"

    def test_store_fallback_when_cache_lost(self, engine, fake_redis, reading):
        dedup = DuplicateFilter(EphemeralCache(fake_redis), engine)
        _store(engine, dedup).save(reading)
        fake_redis.delete(reading_key(reading))

        check = dedup.check(reading)
        assert check.is_duplicate is True
        assert check.source == "store"

    def test_store_tolerance_one_second(self, engine, reading):
        dedup = DuplicateFilter(EphemeralCache(None), engine, tolerance_seconds=1.0)
        _store(engine, dedup).save(reading)

        near = replace(reading, timestamp=reading.timestamp + timedelta(milliseconds=800))
        far = replace(reading, timestamp=reading.timestamp + timedelta(seconds=5))
        assert dedup.check(near).is_duplicate is True
        assert dedup.check(far).is_duplicate is False

    def test_old_receipt_outside_window_is_not_duplicate(self, engine, reading):
        dedup = DuplicateFilter(EphemeralCache(None), engine, window_seconds=300)
        old = replace(reading, received_at=utc_now() - timedelta(minutes=10))
        _store(engine, dedup).save(old)

        assert dedup.check(reading).is_duplicate is False

    def test_cache_failure_fails_open_to_store(self, engine, broken_redis, reading):
        dedup = DuplicateFilter(EphemeralCache(broken_redis), engine)
        assert dedup.check(reading).is_duplicate is False

        _store(engine, dedup).save(reading)
        assert dedup.check(reading).source == "store"

    def test_store_failure_fails_open(self, engine, reading):
        dedup = DuplicateFilter(EphemeralCache(None), engine)
        sensor_readings.drop(engine)
        assert dedup.check(reading).is_duplicate is False
