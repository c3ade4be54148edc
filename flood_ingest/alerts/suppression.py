"""Supresión de alertas repetidas (cool-down por tipo y sensor)."""

from __future__ import annotations

import json
import logging

from ..common.timeutils import isoformat, utc_now
from ..core.domain.alert import AlertType
from ..core.redis.cache import EphemeralCache

logger = logging.getLogger(__name__)


def suppression_key(alert_type: AlertType, sensor_id: str) -> str:
    return f"alert:{alert_type.value}:{sensor_id}"


class AlertSuppressor:
    """Marca ``alert:<TYPE>:<sensor_id>`` con SET NX EX.

    Si la marca ya existe la alerta se suprime. Ante error de la caché se
    permite la alerta (fail open).
    """

    DEFAULT_WINDOW = 300

    def __init__(self, cache: EphemeralCache, window_seconds: int = DEFAULT_WINDOW):
        self._cache = cache
        self._window = window_seconds

    def should_create(self, alert_type: AlertType, sensor_id: str) -> bool:
        marker = json.dumps({"createdAt": isoformat(utc_now())})
        allowed = self._cache.set_if_absent(
            suppression_key(alert_type, sensor_id), marker, self._window, on_error=True
        )
        if not allowed:
            logger.debug(
                "[ALERTS] suppressed type=%s sensor_id=%s", alert_type.value, sensor_id
            )
        return allowed

    def release(self, alert_type: AlertType, sensor_id: str) -> None:
        """Quita la marca (p.ej. si la alerta no pudo persistirse)."""
        self._cache.delete(suppression_key(alert_type, sensor_id))
