"""Tests del engine: timeouts de conexión y de sentencia por backend."""

from __future__ import annotations

from flood_ingest.common import db
from flood_ingest.common.config import Settings


class _FakeConn:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, statement):
        return None


class _FakeEngine:
    def connect(self):
        return _FakeConn()


def _captured(monkeypatch, database_url, timeout=5.0):
    calls = []

    def fake_create_engine(url, **kwargs):
        calls.append(kwargs)
        return _FakeEngine()

    monkeypatch.setattr(db, "create_engine", fake_create_engine)
    db.create_db_engine(Settings(database_url=database_url, db_pool_timeout_seconds=timeout))
    return calls[0]


def test_sqlite_gets_busy_timeout(monkeypatch, tmp_path):
    kwargs = _captured(monkeypatch, f"sqlite:///{tmp_path / 'x.db'}", timeout=3.0)
    assert kwargs["connect_args"] == {"check_same_thread": False, "timeout": 3.0}
    assert "pool_timeout" not in kwargs


def test_postgres_gets_connect_and_statement_timeout(monkeypatch):
    kwargs = _captured(monkeypatch, "postgresql://u:p@db.example/flood", timeout=2.5)
    assert kwargs["pool_timeout"] == 2.5
    assert kwargs["connect_args"] == {
        "connect_timeout": 2,
        "options": "-c statement_timeout=2500",
    }


def test_real_sqlite_engine_connects(tmp_path):
    engine = db.create_db_engine(Settings(database_url=f"sqlite:///{tmp_path / 'real.db'}"))
    try:
        with engine.connect() as conn:
            assert conn.exec_driver_sql("SELECT 1").scalar() == 1
    finally:
        engine.dispose()
