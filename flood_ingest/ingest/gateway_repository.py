"""Repositorio de gateways: registro y bookkeeping de actividad."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from ..common.timeutils import as_utc, isoformat, utc_now
from ..core.domain.sensor_config import Location
from ..infrastructure.persistence.tables import gateways

logger = logging.getLogger(__name__)

STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"


@dataclass(frozen=True)
class Gateway:
    gateway_id: str
    status: str
    reading_count: int
    registered_at: datetime
    last_seen: Optional[datetime] = None
    name: Optional[str] = None
    location: Optional[Location] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gateway_id": self.gateway_id,
            "name": self.name,
            "location": self.location.to_dict() if self.location else None,
            "status": self.status,
            "last_seen": isoformat(self.last_seen),
            "reading_count": self.reading_count,
            "registered_at": isoformat(self.registered_at),
        }


def _row_to_gateway(row) -> Gateway:
    location = None
    if row.lat is not None and row.lng is not None:
        location = Location(lat=row.lat, lng=row.lng)
    return Gateway(
        gateway_id=row.gateway_id,
        name=row.name,
        location=location,
        status=row.status,
        last_seen=as_utc(row.last_seen),
        reading_count=int(row.reading_count or 0),
        registered_at=as_utc(row.registered_at),
    )


class GatewayRepository:
    """Acceso a la tabla ``gateways``."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def _touch(self, conn: Connection, gateway_id: str, seen_at: datetime) -> int:
        # last_seen nunca retrocede: se queda con el máximo.
        stmt = (
            update(gateways)
            .where(gateways.c.gateway_id == gateway_id)
            .values(
                last_seen=case(
                    (gateways.c.last_seen.is_(None), seen_at),
                    (gateways.c.last_seen < seen_at, seen_at),
                    else_=gateways.c.last_seen,
                ),
                status=STATUS_ONLINE,
                reading_count=gateways.c.reading_count + 1,
            )
        )
        return conn.execute(stmt).rowcount

    def upsert_seen(self, gateway_id: str, seen_at: Optional[datetime] = None) -> None:
        """Marca el gateway como visto: online, last_seen y contador.

        Crea el registro si el gateway no se conocía.
        """
        seen_at = as_utc(seen_at) or utc_now()
        with self._engine.begin() as conn:
            if self._touch(conn, gateway_id, seen_at):
                return
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    insert(gateways).values(
                        gateway_id=gateway_id,
                        status=STATUS_ONLINE,
                        last_seen=seen_at,
                        reading_count=1,
                        registered_at=seen_at,
                    )
                )
            logger.info("[GATEWAY] auto-registrado gateway_id=%s", gateway_id)
        except IntegrityError:
            # Otro request lo creó entre el UPDATE y el INSERT.
            with self._engine.begin() as conn:
                self._touch(conn, gateway_id, seen_at)

    def register(
        self,
        gateway_id: str,
        name: Optional[str] = None,
        location: Optional[Location] = None,
    ) -> Gateway:
        """Registra (o actualiza nombre/ubicación de) un gateway.

        Un campo en None conserva el valor ya guardado.
        """
        values: Dict[str, Any] = {}
        if name is not None:
            values["name"] = name
        if location is not None:
            values.update(lat=location.lat, lng=location.lng)

        with self._engine.begin() as conn:
            if values:
                exists = conn.execute(
                    update(gateways).where(gateways.c.gateway_id == gateway_id).values(**values)
                ).rowcount
            else:
                exists = conn.execute(
                    select(gateways.c.gateway_id).where(gateways.c.gateway_id == gateway_id)
                ).first() is not None
            if not exists:
                conn.execute(
                    insert(gateways).values(
                        gateway_id=gateway_id,
                        status=STATUS_OFFLINE,
                        reading_count=0,
                        registered_at=utc_now(),
                        **values,
                    )
                )
        logger.info("[GATEWAY] registrado gateway_id=%s name=%s", gateway_id, name)
        return self.get(gateway_id)

    def get(self, gateway_id: str) -> Optional[Gateway]:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(gateways).where(gateways.c.gateway_id == gateway_id)
            ).first()
        return _row_to_gateway(row) if row else None

    def list_all(self) -> List[Gateway]:
        """Todos los gateways, más recientes primero."""
        stmt = select(gateways).order_by(
            gateways.c.last_seen.is_(None), gateways.c.last_seen.desc()
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_gateway(r) for r in rows]

    def mark_stale_offline(self, offline_after_seconds: int, now: Optional[datetime] = None) -> int:
        """Pasa a offline los gateways sin actividad reciente."""
        cutoff = (as_utc(now) or utc_now()) - timedelta(seconds=offline_after_seconds)
        with self._engine.begin() as conn:
            count = conn.execute(
                update(gateways)
                .where(gateways.c.status == STATUS_ONLINE)
                .where(gateways.c.last_seen < cutoff)
                .values(status=STATUS_OFFLINE)
            ).rowcount
        if count:
            logger.info("[GATEWAY] %d gateway(s) marcados offline", count)
        return count
