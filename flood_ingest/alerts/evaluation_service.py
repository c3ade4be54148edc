"""Evaluación de alertas para una lectura ya persistida."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import List

from sqlalchemy.engine import Engine

from ..common.timeutils import utc_now
from ..core.domain.alert import Alert
from ..core.domain.reading import Reading
from ..ingest.sensor_config_repository import SensorConfigRepository
from ..queries.readings import get_recent_readings
from .alert_rules import AlertEvaluator
from .dispatcher import AlertDispatcher

logger = logging.getLogger(__name__)


class AlertEvaluationService:
    """Carga configuración e historial, evalúa y despacha.

    Nunca propaga errores: cualquier fallo se registra y la evaluación de
    esa lectura termina sin alertas.
    """

    def __init__(
        self,
        engine: Engine,
        configs: SensorConfigRepository,
        dispatcher: AlertDispatcher,
        evaluator: AlertEvaluator | None = None,
        history_limit: int = 10,
        history_window_minutes: int = 30,
    ):
        self._engine = engine
        self._configs = configs
        self._dispatcher = dispatcher
        self._evaluator = evaluator or AlertEvaluator()
        self._history_limit = history_limit
        self._history_window = timedelta(minutes=history_window_minutes)

    def evaluate_reading(self, reading: Reading) -> List[Alert]:
        try:
            config = self._configs.get(reading.sensor_id)
            if config is None or not config.can_alert:
                return []

            # La lectura actual ya está persistida y entra en el historial.
            since = utc_now() - self._history_window
            with self._engine.connect() as conn:
                history = get_recent_readings(conn, reading.sensor_id, since, self._history_limit)

            created: List[Alert] = []
            for candidate in self._evaluator.evaluate(reading, config, history):
                alert = self._dispatcher.dispatch(candidate)
                if alert is not None:
                    created.append(alert)
            return created
        except Exception:
            logger.exception("[ALERTS] evaluation failed sensor_id=%s", reading.sensor_id)
            return []

    # Interfaz de procesador para AsyncAlertProcessor.
    def process(self, reading: Reading) -> List[Alert]:
        return self.evaluate_reading(reading)
