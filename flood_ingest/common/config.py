from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env en la raíz del repositorio, junto a pyproject.toml.
    repo_root = Path(__file__).resolve().parents[2]
    return str(repo_root / ".env")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./flood_alert.db"
    redis_url: str = "redis://localhost:6379/0"

    # Timeouts de dependencias externas (segundos).
    cache_timeout_seconds: float = 2.0
    db_pool_timeout_seconds: float = 5.0

    # Deduplicación de lecturas.
    duplicate_window_seconds: int = 300
    duplicate_tolerance_seconds: float = 1.0

    # Alertas.
    alert_dedup_window_seconds: int = 300
    alert_retention_seconds: int = 7_776_000  # 90 días
    alert_purge_interval_seconds: int = 3600
    alert_workers: int = 2
    alert_queue_size: int = 1000
    history_limit: int = 10
    history_window_minutes: int = 30

    gateway_offline_after_seconds: int = 900
    idempotency_ttl_seconds: int = 300

    # Rate limiting.
    rate_limit_enabled: bool = True
    rate_limit_sensor_per_min: int = 20
    rate_limit_window_seconds: int = 60

    api_key_secret: Optional[str] = None
    admin_key: Optional[str] = None
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    debug_errors: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def get_settings() -> Settings:
    # Cargar el env file (si existe) sin pisar variables reales del entorno.
    env_file = os.getenv("FLOOD_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    cors = os.getenv("CORS_ORIGINS", "")
    cors_origins = [o.strip() for o in cors.split(",") if o.strip()] or ["http://localhost:3000"]

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./flood_alert.db"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        cache_timeout_seconds=float(os.getenv("CACHE_TIMEOUT_SECONDS", "2.0")),
        db_pool_timeout_seconds=float(os.getenv("DB_POOL_TIMEOUT_SECONDS", "5.0")),
        duplicate_window_seconds=int(os.getenv("DUPLICATE_WINDOW_SECONDS", "300")),
        duplicate_tolerance_seconds=float(os.getenv("DUPLICATE_TOLERANCE_SECONDS", "1.0")),
        alert_dedup_window_seconds=int(os.getenv("ALERT_DEDUP_WINDOW_SECONDS", "300")),
        alert_retention_seconds=int(os.getenv("ALERT_RETENTION_SECONDS", "7776000")),
        alert_purge_interval_seconds=int(os.getenv("ALERT_PURGE_INTERVAL_SECONDS", "3600")),
        alert_workers=int(os.getenv("ALERT_WORKERS", "2")),
        alert_queue_size=int(os.getenv("ALERT_QUEUE_SIZE", "1000")),
        history_limit=int(os.getenv("ALERT_HISTORY_LIMIT", "10")),
        history_window_minutes=int(os.getenv("ALERT_HISTORY_WINDOW_MINUTES", "30")),
        gateway_offline_after_seconds=int(os.getenv("GATEWAY_OFFLINE_AFTER_SECONDS", "900")),
        idempotency_ttl_seconds=int(os.getenv("IDEMPOTENCY_TTL_SECONDS", "300")),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "1"),
        rate_limit_sensor_per_min=int(os.getenv("RATE_LIMIT_SENSOR_PER_MIN", "20")),
        rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60")),
        api_key_secret=os.getenv("API_KEY_SECRET") or None,
        admin_key=os.getenv("ADMIN_KEY") or None,
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=cors_origins,
        debug_errors=_env_bool("INGEST_DEBUG_ERRORS", "0"),
    )
