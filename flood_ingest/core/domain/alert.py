"""Modelo de dominio de alertas."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ...common.timeutils import isoformat


class AlertType(str, Enum):
    WATER_LEVEL_CRITICAL = "WATER_LEVEL_CRITICAL"
    WATER_LEVEL_HIGH = "WATER_LEVEL_HIGH"  # nivel alto y subiendo
    RAINFALL_HEAVY = "RAINFALL_HEAVY"
    FLOW_EXCESSIVE = "FLOW_EXCESSIVE"


class AlertSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AlertStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"


@dataclass(frozen=True)
class AlertCandidate:
    """Alerta propuesta por el evaluador, antes de supresión y persistencia."""

    sensor_id: str
    type: AlertType
    severity: AlertSeverity
    value: float
    threshold: float
    message: str
    gateway_id: Optional[str] = None


@dataclass(frozen=True)
class Alert:
    id: str
    sensor_id: str
    type: AlertType
    severity: AlertSeverity
    value: float
    threshold: float
    message: str
    detected_at: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    gateway_id: Optional[str] = None
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    escalation_level: int = 0
    superseded_by: Optional[str] = None
    expires_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sensor_id": self.sensor_id,
            "gateway_id": self.gateway_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "value": self.value,
            "threshold": self.threshold,
            "message": self.message,
            "detected_at": isoformat(self.detected_at),
            "status": self.status.value,
            "acknowledged": self.acknowledged,
            "acknowledged_at": isoformat(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "resolved_at": isoformat(self.resolved_at),
            "escalation_level": self.escalation_level,
            "superseded_by": self.superseded_by,
            "expires_at": isoformat(self.expires_at),
        }
