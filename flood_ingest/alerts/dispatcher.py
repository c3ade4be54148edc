"""Dispatcher de alertas: supresión, persistencia y broadcast."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..core.domain.alert import Alert, AlertCandidate
from ..realtime.socketio import Broadcaster, broadcast_alert
from .alert_repository import AlertRepository
from .suppression import AlertSuppressor

logger = logging.getLogger(__name__)


class AlertDispatcher:
    """Lleva un ``AlertCandidate`` hasta alerta persistida y notificada.

    - Suprimida: sube el escalation_level de la alerta ACTIVE y devuelve None.
    - Permitida: inserta (resolviendo las ACTIVE previas) y emite ``alert:new``.
    """

    def __init__(
        self,
        suppressor: AlertSuppressor,
        repository: AlertRepository,
        broadcaster: Broadcaster,
    ):
        self._suppressor = suppressor
        self._repository = repository
        self._broadcaster = broadcaster

    def dispatch(self, candidate: AlertCandidate) -> Optional[Alert]:
        if not self._suppressor.should_create(candidate.type, candidate.sensor_id):
            try:
                self._repository.bump_escalation(candidate.type, candidate.sensor_id)
            except SQLAlchemyError as e:
                logger.warning(
                    "[ALERTS] escalation bump failed type=%s sensor_id=%s err=%s",
                    candidate.type.value, candidate.sensor_id, e,
                )
            return None

        try:
            alert = self._repository.insert(candidate)
        except SQLAlchemyError:
            # Sin la marca, la próxima lectura podrá volver a intentarlo.
            self._suppressor.release(candidate.type, candidate.sensor_id)
            raise

        broadcast_alert(self._broadcaster, alert)
        return alert
