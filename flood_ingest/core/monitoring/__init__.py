"""Monitoring layer - Métricas y observabilidad."""

from .health import HealthChecker, HealthStatus
from .stats import Stats

__all__ = ["HealthChecker", "HealthStatus", "Stats"]
