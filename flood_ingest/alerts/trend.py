"""Análisis de tendencia sobre una ventana corta de lecturas."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

TREND_THRESHOLD = 0.5


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendAnalysis:
    direction: TrendDirection
    avg_change: float
    volatility: float


STABLE = TrendAnalysis(TrendDirection.STABLE, 0.0, 0.0)


def analyze_trend(values: Sequence[float]) -> TrendAnalysis:
    """Tendencia de una serie ordenada de más antigua a más reciente.

    avg_change es la media de los deltas entre pasos consecutivos y
    volatility su desviación estándar poblacional. Con menos de dos
    valores la tendencia es estable.
    """
    if len(values) < 2:
        return STABLE

    changes = [values[i] - values[i - 1] for i in range(1, len(values))]
    avg_change = sum(changes) / len(changes)
    variance = sum((c - avg_change) ** 2 for c in changes) / len(changes)

    direction = TrendDirection.STABLE
    if avg_change > TREND_THRESHOLD:
        direction = TrendDirection.INCREASING
    elif avg_change < -TREND_THRESHOLD:
        direction = TrendDirection.DECREASING

    return TrendAnalysis(direction, avg_change, math.sqrt(variance))
