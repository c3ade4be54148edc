"""Estadísticas de ingesta."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock

from ...common.timeutils import isoformat, utc_now


@dataclass
class Stats:
    """Contadores de ingesta del proceso (se reinician con el proceso)."""

    received: int = 0
    accepted: int = 0
    duplicates: int = 0
    rejected: int = 0
    failed: int = 0
    last_reading_at: datetime | None = None
    started_at: datetime = field(default_factory=utc_now)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} accepted={self.accepted} "
            f"duplicates={self.duplicates} rejected={self.rejected} failed={self.failed}"
        )

    def record(self, outcome: str) -> None:
        with self._lock:
            self.received += 1
            if outcome == "accepted":
                self.accepted += 1
                self.last_reading_at = utc_now()
            elif outcome == "duplicate":
                self.duplicates += 1
            elif outcome == "rejected":
                self.rejected += 1
            else:
                self.failed += 1

    def to_dict(self) -> dict:
        """Convierte a diccionario."""
        return {
            "received": self.received,
            "accepted": self.accepted,
            "duplicates": self.duplicates,
            "rejected": self.rejected,
            "failed": self.failed,
            "last_reading_at": isoformat(self.last_reading_at),
            "started_at": isoformat(self.started_at),
            "success_rate": self._success_rate(),
        }

    def _success_rate(self) -> float:
        """Calcula tasa de éxito."""
        total = self.accepted + self.failed
        if total == 0:
            return 1.0
        return self.accepted / total
