"""Fixtures compartidas.

- SQLite en archivo temporal como almacén durable.
- Doble de Redis en proceso con TTL y reloj controlable.
- Broadcaster que registra los eventos emitidos.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Tuple

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine

from flood_ingest.common.config import Settings
from flood_ingest.container import build_container
from flood_ingest.infrastructure.persistence.tables import ensure_schema
from flood_ingest.main import create_app

API_KEY = "test-api-key"
ADMIN_KEY = "test-admin-key"


# =============================================================================
# DOBLES
# =============================================================================

class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Subconjunto de redis.Redis usado por EphemeralCache (decode_responses=True)."""

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _alive(self, key: str) -> bool:
        item = self._data.get(key)
        if item is None:
            return False
        _, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return False
        return True

    def get(self, key: str) -> Optional[str]:
        return self._data[key][0] if self._alive(key) else None

    def set(self, key: str, value: Any, nx: bool = False, ex: Optional[int] = None):
        if nx and self._alive(key):
            return None
        expires_at = self._clock() + ex if ex else None
        self._data[key] = (str(value), expires_at)
        return True

    def incr(self, key: str) -> int:
        if self._alive(key):
            value, expires_at = self._data[key]
        else:
            value, expires_at = "0", None
        count = int(value) + 1
        self._data[key] = (str(count), expires_at)
        return count

    def expire(self, key: str, seconds: int) -> bool:
        if not self._alive(key):
            return False
        value, _ = self._data[key]
        self._data[key] = (value, self._clock() + seconds)
        return True

    def delete(self, *keys: str) -> int:
        return sum(1 for k in keys if self._data.pop(k, None) is not None)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass


class BrokenRedis:
    """Redis inalcanzable: toda operación lanza ConnectionError."""

    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise redis.ConnectionError("redis down")
        return _fail


class RecordingBroadcaster:
    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any], Optional[str]]] = []

    def emit(self, event: str, data: Dict[str, Any], room: Optional[str] = None) -> None:
        self.events.append((event, data, room))

    def named(self, event: str) -> List[Tuple[str, Dict[str, Any], Optional[str]]]:
        return [e for e in self.events if e[0] == event]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def engine(tmp_path):
    # Archivo por test: cada hilo (request, workers) usa su propia conexión.
    eng = create_engine(
        f"sqlite:///{tmp_path / 'flood.db'}",
        connect_args={"check_same_thread": False, "timeout": 10},
        future=True,
    )
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        api_key_secret=API_KEY,
        admin_key=ADMIN_KEY,
        alert_workers=1,
        environment="test",
    )


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def container(settings, engine, fake_redis, broadcaster):
    return build_container(settings, broadcaster, engine=engine, redis_client=fake_redis)


@pytest.fixture
def client(settings, container):
    app = create_app(settings, container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(api_key) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}


@pytest.fixture
def now_ms() -> int:
    return int(time.time() * 1000)


@pytest.fixture
def legacy_payload(now_ms) -> Dict[str, Any]:
    return {
        "sensor_id": "SENSOR_001",
        "gateway_id": "GATEWAY_001",
        "water_level_cm": 120,
        "rain_accumulated_mm": 5,
        "flow_rate_lmin": 10,
        "temperature_c": 25,
        "humidity_percent": 60,
        "battery_percent": 90,
        "timestamp": now_ms,
        "rssi": -95,
        "snr": 7.5,
    }


@pytest.fixture
def broken_redis() -> BrokenRedis:
    return BrokenRedis()


@pytest.fixture
def api_key() -> str:
    return API_KEY


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def cacheless_client(settings, engine, broken_redis, broadcaster):
    container = build_container(settings, broadcaster, engine=engine, redis_client=broken_redis)
    with TestClient(create_app(settings, container)) as test_client:
        yield test_client
