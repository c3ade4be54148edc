"""Health checks del sistema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..redis.cache import EphemeralCache

logger = logging.getLogger(__name__)


@dataclass
class HealthStatus:
    """Estado de salud del sistema."""
    db_connected: bool
    cache_connected: bool

    @property
    def healthy(self) -> bool:
        # Redis es opcional: sin caché el servicio degrada pero sigue listo.
        return self.db_connected

    @property
    def degraded(self) -> bool:
        return self.db_connected and not self.cache_connected

    def to_dict(self) -> dict:
        return {
            "healthy": self.healthy,
            "degraded": self.degraded,
            "database": "ok" if self.db_connected else "error",
            "cache": "ok" if self.cache_connected else "unavailable",
        }


class HealthChecker:
    """Verifica el estado de salud del almacén y la caché."""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        cache: Optional[EphemeralCache] = None,
    ):
        self._engine = engine
        self._cache = cache

    def check_database(self) -> bool:
        """Verifica conexión a BD."""
        if not self._engine:
            return False

        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("[HEALTH] database check failed: %s", e)
            return False

    def check_cache(self) -> bool:
        """Verifica conexión a Redis."""
        if not self._cache:
            return False
        return self._cache.ping()

    def get_status(self) -> HealthStatus:
        return HealthStatus(
            db_connected=self.check_database(),
            cache_connected=self.check_cache(),
        )
