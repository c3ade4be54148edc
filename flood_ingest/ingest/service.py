"""Servicio de ingesta: normalizar, deduplicar, persistir.

La evaluación de alertas no ocurre aquí: ``dispatch_side_effects`` la
encola en el procesador asíncrono una vez preparada la respuesta.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..alerts.async_processor import AsyncAlertProcessor
from ..common.timeutils import utc_now
from ..core.domain.reading import Reading
from ..core.monitoring.stats import Stats
from ..core.validation.payload_validator import PayloadNormalizer
from ..errors import StorageError, ValidationError
from ..realtime.socketio import Broadcaster, broadcast_reading
from .dedup import DuplicateFilter
from .reading_repository import ReadingStore

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IngestOutcome:
    status: str
    reading: Reading
    received_at: datetime

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED


class IngestionService:
    """Orquesta el pipeline síncrono de una lectura.

    Resultados:
    - ``IngestOutcome(status="accepted")`` con la lectura persistida.
    - ``IngestOutcome(status="duplicate")``: no es un error.

    Raises:
        ValidationError: payload malformado o fuera de rango.
        StorageError: la lectura no pudo persistirse.
    """

    def __init__(
        self,
        normalizer: PayloadNormalizer,
        duplicate_filter: DuplicateFilter,
        store: ReadingStore,
        stats: Optional[Stats] = None,
    ):
        self._normalizer = normalizer
        self._dedup = duplicate_filter
        self._store = store
        self._stats = stats or Stats()

    @property
    def stats(self) -> Stats:
        return self._stats

    def ingest(self, payload: Any, received_at: Optional[datetime] = None) -> IngestOutcome:
        received_at = received_at or utc_now()
        try:
            reading = self._normalizer.normalize(payload, received_at=received_at)
        except ValidationError as e:
            self._stats.record("rejected")
            logger.info("[INGEST] rejected %s", e)
            raise

        check = self._dedup.check(reading)
        if check.is_duplicate:
            self._stats.record(DUPLICATE)
            logger.info(
                "[INGEST] duplicate sensor_id=%s ts=%s source=%s",
                reading.sensor_id, reading.timestamp_ms, check.source,
            )
            return IngestOutcome(DUPLICATE, reading, received_at)

        try:
            stored = self._store.save(reading)
        except StorageError:
            self._stats.record("failed")
            raise

        self._stats.record(ACCEPTED)
        logger.info(
            "[INGEST] accepted reading_id=%s sensor_id=%s format=%s",
            stored.reading_id, stored.sensor_id, stored.payload_format.value,
        )
        return IngestOutcome(ACCEPTED, stored, received_at)


def dispatch_side_effects(
    outcome: IngestOutcome,
    broadcaster: Broadcaster,
    processor: AsyncAlertProcessor,
) -> None:
    """Broadcast de la lectura y evaluación de alertas desacoplada."""
    if not outcome.accepted:
        return
    broadcast_reading(broadcaster, outcome.reading)
    processor.enqueue(outcome.reading)
