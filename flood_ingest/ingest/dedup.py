"""Deduplicación de lecturas.

Evita persistir dos veces la misma observación (reintentos del gateway o
lecturas reenviadas). Dos niveles:

1. Caché efímera: clave ``reading:<sensor_id>:<epoch_ms>`` con TTL.
2. Almacén durable: misma lectura (±tolerancia) recibida dentro de la
   ventana de duplicados.

Ambos niveles fallan abiertos: un error nunca descarta una lectura.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import and_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..common.timeutils import utc_now
from ..core.domain.reading import Reading
from ..core.redis.cache import EphemeralCache
from ..infrastructure.persistence.tables import sensor_readings

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class DuplicateCheck:
    is_duplicate: bool
    source: Optional[str] = None  # "cache" | "store"


def reading_key(reading: Reading) -> str:
    return f"reading:{reading.sensor_id}:{reading.timestamp_ms}"


class DuplicateFilter:
    """Filtro de duplicados caché-primero con fallback al almacén.

    Attributes:
        window_seconds: TTL de la clave en caché y ventana de recepción en BD.
        tolerance_seconds: radio alrededor del timestamp en la consulta durable.
    """

    DEFAULT_WINDOW = 300

    def __init__(
        self,
        cache: EphemeralCache,
        engine: Engine,
        window_seconds: int = DEFAULT_WINDOW,
        tolerance_seconds: float = 1.0,
    ):
        self._cache = cache
        self._engine = engine
        self._window = window_seconds
        self._tolerance = tolerance_seconds

    def check(self, reading: Reading) -> DuplicateCheck:
        key = reading_key(reading)

        if self._cache.get(key, _MISSING) is not _MISSING:
            logger.debug("[DEDUP] cache hit key=%s", key)
            return DuplicateCheck(True, "cache")

        if self._exists_in_store(reading):
            logger.debug("[DEDUP] store hit key=%s", key)
            return DuplicateCheck(True, "store")

        return DuplicateCheck(False)

    def _exists_in_store(self, reading: Reading) -> bool:
        tolerance = timedelta(seconds=self._tolerance)
        received_after = utc_now() - timedelta(seconds=self._window)

        stmt = (
            select(sensor_readings.c.id)
            .where(
                and_(
                    sensor_readings.c.sensor_id == reading.sensor_id,
                    sensor_readings.c.timestamp >= reading.timestamp - tolerance,
                    sensor_readings.c.timestamp <= reading.timestamp + tolerance,
                    sensor_readings.c.received_at >= received_after,
                )
            )
            .limit(1)
        )
        try:
            with self._engine.connect() as conn:
                row = conn.execute(stmt).first()
        except SQLAlchemyError as e:
            # Fail open: ante la duda, se acepta la lectura.
            logger.warning(
                "[DEDUP] store_error sensor_id=%s err=%s", reading.sensor_id, e
            )
            return False
        return row is not None

    def mark_processed(self, reading: Reading) -> None:
        """Registra la clave en caché. Solo tras persistir con éxito."""
        self._cache.set_with_ttl(reading_key(reading), "1", self._window)
