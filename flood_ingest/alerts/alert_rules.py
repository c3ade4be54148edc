"""Reglas de alerta por umbral y tendencia.

El evaluador es una función pura de (lectura, configuración, historial):
no consulta caché ni BD. La supresión de repetidas la hace el dispatcher.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..core.domain.alert import AlertCandidate, AlertSeverity, AlertType
from ..core.domain.reading import Reading
from ..core.domain.sensor_config import SensorConfig, Thresholds
from .trend import TrendDirection, analyze_trend

logger = logging.getLogger(__name__)

# Subida media mínima (cm por lectura) para WATER_LEVEL_HIGH.
RISING_MIN_AVG_CHANGE = 2.0
# Sin tendencia creciente, el caudal debe superar el umbral en este factor.
FLOW_OVERSHOOT_FACTOR = 1.2


def _fmt(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


class AlertEvaluator:
    """Aplica las cuatro reglas de forma independiente.

    Una misma lectura puede producir cero, una o varias alertas.
    """

    def evaluate(
        self,
        reading: Reading,
        config: Optional[SensorConfig],
        history: Sequence[Reading],
    ) -> List[AlertCandidate]:
        """Evalúa la lectura.

        Args:
            reading: lectura nueva.
            config: configuración del sensor (None = sin configuración).
            history: lecturas recientes del sensor, más recientes primero.
        """
        if config is None or not config.can_alert:
            return []

        # El análisis de tendencia espera la serie de más antigua a más reciente.
        chronological = list(reversed(history))
        t = config.thresholds

        candidates: List[AlertCandidate] = []
        for rule in (self._water_level, self._rainfall, self._flow):
            candidate = rule(reading, t, chronological)
            if candidate is not None:
                candidates.append(candidate)
        return candidates

    def _water_level(
        self,
        reading: Reading,
        t: Thresholds,
        chronological: Sequence[Reading],
    ) -> Optional[AlertCandidate]:
        level = reading.water_level

        if t.water_level_critical is not None and level > t.water_level_critical:
            return AlertCandidate(
                sensor_id=reading.sensor_id,
                gateway_id=reading.gateway_id,
                type=AlertType.WATER_LEVEL_CRITICAL,
                severity=AlertSeverity.CRITICAL,
                value=level,
                threshold=t.water_level_critical,
                message=(
                    f"Critical water level: {_fmt(level)}cm "
                    f"(threshold: {_fmt(t.water_level_critical)}cm)"
                ),
            )

        if t.water_level_warning is None or level <= t.water_level_warning:
            return None

        trend = analyze_trend([r.water_level for r in chronological])
        if trend.direction is TrendDirection.INCREASING and trend.avg_change > RISING_MIN_AVG_CHANGE:
            return AlertCandidate(
                sensor_id=reading.sensor_id,
                gateway_id=reading.gateway_id,
                type=AlertType.WATER_LEVEL_HIGH,
                severity=AlertSeverity.WARNING,
                value=level,
                threshold=t.water_level_warning,
                message=(
                    f"Water level HIGH and RISING: {_fmt(level)}cm "
                    f"(trend: +{trend.avg_change:.1f}cm/reading)"
                ),
            )
        return None

    def _rainfall(
        self,
        reading: Reading,
        t: Thresholds,
        chronological: Sequence[Reading],
    ) -> Optional[AlertCandidate]:
        rain = reading.rainfall_accumulated
        if t.rainfall_heavy is None or rain <= t.rainfall_heavy:
            return None
        return AlertCandidate(
            sensor_id=reading.sensor_id,
            gateway_id=reading.gateway_id,
            type=AlertType.RAINFALL_HEAVY,
            severity=AlertSeverity.WARNING,
            value=rain,
            threshold=t.rainfall_heavy,
            message=f"Heavy rainfall: {_fmt(rain)}mm (threshold: {_fmt(t.rainfall_heavy)}mm)",
        )

    def _flow(
        self,
        reading: Reading,
        t: Thresholds,
        chronological: Sequence[Reading],
    ) -> Optional[AlertCandidate]:
        flow = reading.flow_rate
        if t.flow_excessive is None or flow <= t.flow_excessive:
            return None

        trend = analyze_trend([r.flow_rate for r in chronological])
        if trend.direction is not TrendDirection.INCREASING and flow <= t.flow_excessive * FLOW_OVERSHOOT_FACTOR:
            return None

        return AlertCandidate(
            sensor_id=reading.sensor_id,
            gateway_id=reading.gateway_id,
            type=AlertType.FLOW_EXCESSIVE,
            severity=AlertSeverity.WARNING,
            value=flow,
            threshold=t.flow_excessive,
            message=f"Excessive flow: {_fmt(flow)}L/min (threshold: {_fmt(t.flow_excessive)}L/min)",
        )
