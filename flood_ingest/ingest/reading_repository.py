"""Almacén durable de lecturas."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..common.timeutils import as_utc, utc_now
from ..core.domain.reading import PayloadFormat, Reading, SignalInfo, SignalQuality
from ..errors import StorageError
from ..infrastructure.persistence.tables import sensor_readings
from .dedup import DuplicateFilter
from .gateway_repository import GatewayRepository

logger = logging.getLogger(__name__)


def reading_to_row(reading: Reading, reading_id: str) -> Dict[str, Any]:
    signal = reading.signal or SignalInfo()
    return {
        "id": reading_id,
        "sensor_id": reading.sensor_id,
        "gateway_id": reading.gateway_id,
        "timestamp": reading.timestamp,
        "received_at": reading.received_at,
        "water_level": reading.water_level,
        "rainfall_accumulated": reading.rainfall_accumulated,
        "flow_rate": reading.flow_rate,
        "temperature": reading.temperature,
        "humidity": reading.humidity,
        "battery": reading.battery,
        "rssi": signal.rssi,
        "snr": signal.snr,
        "signal_quality": signal.quality.value if signal.quality else None,
        "payload_format": reading.payload_format.value,
        "sequence": reading.sequence,
    }


def row_to_reading(row) -> Reading:
    signal = None
    if row.rssi is not None or row.snr is not None:
        signal = SignalInfo(
            rssi=row.rssi,
            snr=row.snr,
            quality=SignalQuality(row.signal_quality) if row.signal_quality else None,
        )
    return Reading(
        reading_id=row.id,
        sensor_id=row.sensor_id,
        gateway_id=row.gateway_id,
        timestamp=as_utc(row.timestamp),
        received_at=as_utc(row.received_at),
        water_level=row.water_level,
        rainfall_accumulated=row.rainfall_accumulated,
        flow_rate=row.flow_rate,
        temperature=row.temperature,
        humidity=row.humidity,
        battery=row.battery,
        signal=signal,
        payload_format=PayloadFormat(row.payload_format),
        sequence=row.sequence,
    )


class ReadingStore:
    """Persiste lecturas y hace el bookkeeping posterior.

    Orden de efectos en ``save``:
    1. INSERT de la lectura en su propia transacción (fail closed).
    2. Clave de dedup en caché (best effort).
    3. Upsert del gateway (best effort, nunca revierte la lectura).
    """

    def __init__(
        self,
        engine: Engine,
        gateways: GatewayRepository,
        duplicate_filter: Optional[DuplicateFilter] = None,
    ):
        self._engine = engine
        self._gateways = gateways
        self._dedup = duplicate_filter

    def save(self, reading: Reading) -> Reading:
        """Guarda la lectura y devuelve la copia con ``reading_id``.

        Raises:
            StorageError: si el INSERT falla.
        """
        reading_id = uuid.uuid4().hex
        stored = reading.with_id(reading_id, reading.received_at or utc_now())

        try:
            with self._engine.begin() as conn:
                conn.execute(insert(sensor_readings).values(**reading_to_row(stored, reading_id)))
        except SQLAlchemyError as e:
            logger.error(
                "[STORE] insert failed sensor_id=%s err=%s", reading.sensor_id, e
            )
            raise StorageError(f"could not persist reading for {reading.sensor_id}") from e

        if self._dedup is not None:
            self._dedup.mark_processed(stored)

        if stored.gateway_id:
            try:
                self._gateways.upsert_seen(stored.gateway_id, stored.received_at)
            except SQLAlchemyError as e:
                logger.warning(
                    "[GATEWAY] upsert failed gateway_id=%s err=%s", stored.gateway_id, e
                )

        logger.debug(
            "[STORE] saved reading_id=%s sensor_id=%s ts=%s",
            reading_id, stored.sensor_id, stored.timestamp_ms,
        )
        return stored
