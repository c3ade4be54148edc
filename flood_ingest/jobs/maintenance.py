"""Barrido periódico de mantenimiento.

- Purga alertas con retención vencida (``expires_at``).
- Marca offline los gateways sin actividad reciente.

Corre como hilo daemon dentro del servicio o como proceso aparte
(``flood-maintenance``).
"""

from __future__ import annotations

import argparse
import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..alerts.alert_repository import AlertRepository
from ..ingest.gateway_repository import GatewayRepository

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    purged_alerts: int = 0
    offline_gateways: int = 0


class MaintenanceSweeper:
    def __init__(
        self,
        alerts: AlertRepository,
        gateways: GatewayRepository,
        interval_seconds: float = 3600,
        gateway_offline_after_seconds: int = 900,
    ):
        self._alerts = alerts
        self._gateways = gateways
        self._interval = interval_seconds
        self._offline_after = gateway_offline_after_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> SweepResult:
        result = SweepResult()
        try:
            result.purged_alerts = self._alerts.purge_expired()
        except SQLAlchemyError as e:
            logger.warning("[MAINT] alert purge failed: %s", e)
        try:
            result.offline_gateways = self._gateways.mark_stale_offline(self._offline_after)
        except SQLAlchemyError as e:
            logger.warning("[MAINT] gateway sweep failed: %s", e)
        return result

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.run_once()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="maintenance-sweeper")
        self._thread.start()
        logger.info("[MAINT] Started interval=%.0fs", self._interval)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None


def main() -> None:
    from ..common.config import get_settings
    from ..common.db import create_db_engine
    from ..infrastructure.persistence.tables import ensure_schema

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    p = argparse.ArgumentParser(description="Barrido de retención de alertas y estado de gateways")
    p.add_argument("--sleep-seconds", type=float, default=float(settings.alert_purge_interval_seconds))
    p.add_argument("--once", action="store_true", help="run a single iteration and exit")
    args = p.parse_args()

    engine = create_db_engine(settings)
    ensure_schema(engine)
    sweeper = MaintenanceSweeper(
        AlertRepository(engine, settings.alert_retention_seconds),
        GatewayRepository(engine),
        interval_seconds=args.sleep_seconds,
        gateway_offline_after_seconds=settings.gateway_offline_after_seconds,
    )

    logger.info("Maintenance sweeper started sleep=%.1fs", args.sleep_seconds)
    try:
        while True:
            result = sweeper.run_once()
            logger.info(
                "Iteración completada purged=%d offline=%d",
                result.purged_alerts, result.offline_gateways,
            )
            if args.once:
                return
            time.sleep(args.sleep_seconds)
    finally:
        engine.dispose()


if __name__ == "__main__":
    main()
