"""Repositorio de alertas - operaciones de persistencia.

Mantiene UNA alerta activa por (sensor_id, type): al insertar una nueva,
las ACTIVE anteriores de la misma clave pasan a RESOLVED con
``superseded_by`` apuntando a la nueva.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Engine

from ..common.timeutils import as_utc, utc_now
from ..core.domain.alert import Alert, AlertCandidate, AlertSeverity, AlertStatus, AlertType
from ..errors import InvalidTransitionError
from ..infrastructure.persistence.tables import alerts

logger = logging.getLogger(__name__)

_a = alerts.c


def _row_to_alert(row) -> Alert:
    return Alert(
        id=row.id,
        sensor_id=row.sensor_id,
        gateway_id=row.gateway_id,
        type=AlertType(row.type),
        severity=AlertSeverity(row.severity),
        value=row.value,
        threshold=row.threshold,
        message=row.message,
        detected_at=as_utc(row.detected_at),
        status=AlertStatus(row.status),
        acknowledged=bool(row.acknowledged),
        acknowledged_at=as_utc(row.acknowledged_at),
        acknowledged_by=row.acknowledged_by,
        resolved_at=as_utc(row.resolved_at),
        escalation_level=int(row.escalation_level or 0),
        superseded_by=row.superseded_by,
        expires_at=as_utc(row.expires_at),
    )


class AlertRepository:
    def __init__(self, engine: Engine, retention_seconds: int = 7_776_000):
        self._engine = engine
        self._retention = timedelta(seconds=retention_seconds)

    def insert(self, candidate: AlertCandidate, detected_at: Optional[datetime] = None) -> Alert:
        """Inserta la alerta y resuelve las ACTIVE previas de la misma clave."""
        detected_at = as_utc(detected_at) or utc_now()
        alert = Alert(
            id=uuid.uuid4().hex,
            sensor_id=candidate.sensor_id,
            gateway_id=candidate.gateway_id,
            type=candidate.type,
            severity=candidate.severity,
            value=candidate.value,
            threshold=candidate.threshold,
            message=candidate.message,
            detected_at=detected_at,
            expires_at=detected_at + self._retention,
        )

        with self._engine.begin() as conn:
            superseded = conn.execute(
                update(alerts)
                .where(
                    _a.sensor_id == alert.sensor_id,
                    _a.type == alert.type.value,
                    _a.status == AlertStatus.ACTIVE.value,
                )
                .values(
                    status=AlertStatus.RESOLVED.value,
                    resolved_at=detected_at,
                    superseded_by=alert.id,
                )
            ).rowcount
            conn.execute(
                insert(alerts).values(
                    id=alert.id,
                    sensor_id=alert.sensor_id,
                    gateway_id=alert.gateway_id,
                    type=alert.type.value,
                    severity=alert.severity.value,
                    value=alert.value,
                    threshold=alert.threshold,
                    message=alert.message,
                    detected_at=alert.detected_at,
                    status=alert.status.value,
                    acknowledged=False,
                    escalation_level=0,
                    expires_at=alert.expires_at,
                )
            )

        logger.info(
            "[ALERTS] created id=%s type=%s sensor_id=%s severity=%s superseded=%d",
            alert.id, alert.type.value, alert.sensor_id, alert.severity.value, superseded,
        )
        return alert

    def bump_escalation(self, alert_type: AlertType, sensor_id: str) -> int:
        """Incrementa escalation_level de la alerta ACTIVE de la clave."""
        with self._engine.begin() as conn:
            return conn.execute(
                update(alerts)
                .where(
                    _a.sensor_id == sensor_id,
                    _a.type == alert_type.value,
                    _a.status == AlertStatus.ACTIVE.value,
                )
                .values(escalation_level=_a.escalation_level + 1)
            ).rowcount

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._engine.connect() as conn:
            row = conn.execute(select(alerts).where(_a.id == alert_id)).first()
        return _row_to_alert(row) if row else None

    def acknowledge(self, alert_id: str, user: str) -> Optional[Alert]:
        """ACTIVE -> ACKNOWLEDGED. None si la alerta no existe.

        Raises:
            InvalidTransitionError: si la alerta no está activa.
        """
        current = self.get(alert_id)
        if current is None:
            return None
        if current.status is not AlertStatus.ACTIVE:
            raise InvalidTransitionError(f"alert {alert_id} is already {current.status.value.lower()}")

        with self._engine.begin() as conn:
            conn.execute(
                update(alerts)
                .where(_a.id == alert_id)
                .values(
                    status=AlertStatus.ACKNOWLEDGED.value,
                    acknowledged=True,
                    acknowledged_at=utc_now(),
                    acknowledged_by=user,
                )
            )
        logger.info("[ALERTS] acknowledged id=%s by=%s", alert_id, user)
        return self.get(alert_id)

    def resolve(self, alert_id: str) -> Optional[Alert]:
        """ACTIVE/ACKNOWLEDGED -> RESOLVED. None si la alerta no existe."""
        current = self.get(alert_id)
        if current is None:
            return None
        if current.status is AlertStatus.RESOLVED:
            raise InvalidTransitionError(f"alert {alert_id} is already resolved")

        with self._engine.begin() as conn:
            conn.execute(
                update(alerts)
                .where(_a.id == alert_id)
                .values(status=AlertStatus.RESOLVED.value, resolved_at=utc_now())
            )
        logger.info("[ALERTS] resolved id=%s", alert_id)
        return self.get(alert_id)

    def list_alerts(
        self,
        sensor_id: Optional[str] = None,
        status: Optional[AlertStatus] = None,
        alert_type: Optional[AlertType] = None,
        limit: int = 100,
    ) -> List[Alert]:
        stmt = select(alerts)
        if sensor_id:
            stmt = stmt.where(_a.sensor_id == sensor_id)
        if status is not None:
            stmt = stmt.where(_a.status == status.value)
        if alert_type is not None:
            stmt = stmt.where(_a.type == alert_type.value)
        stmt = stmt.order_by(_a.detected_at.desc()).limit(limit)

        with self._engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [_row_to_alert(r) for r in rows]

    def count_active(self) -> int:
        with self._engine.connect() as conn:
            return int(
                conn.execute(
                    select(func.count()).select_from(alerts).where(
                        _a.status == AlertStatus.ACTIVE.value
                    )
                ).scalar_one()
            )

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Borra las alertas con expires_at vencido (retención)."""
        now = as_utc(now) or utc_now()
        with self._engine.begin() as conn:
            deleted = conn.execute(delete(alerts).where(_a.expires_at <= now)).rowcount
        if deleted:
            logger.info("[ALERTS] purged %d expired alert(s)", deleted)
        return deleted
