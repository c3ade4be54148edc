"""Composición de dependencias del proceso.

No hay conexiones globales: ``build_container`` crea el engine, el cliente
Redis y todos los componentes, y el lifespan de la app es dueño de
``start``/``close``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import redis
from sqlalchemy.engine import Engine

from .alerts.alert_repository import AlertRepository
from .alerts.alert_rules import AlertEvaluator
from .alerts.async_processor import AsyncAlertProcessor
from .alerts.dispatcher import AlertDispatcher
from .alerts.evaluation_service import AlertEvaluationService
from .alerts.suppression import AlertSuppressor
from .common.config import Settings
from .common.db import create_db_engine
from .core.monitoring.health import HealthChecker
from .core.monitoring.stats import Stats
from .core.redis.cache import EphemeralCache
from .core.redis.connection import RedisConnection
from .core.validation.payload_validator import PayloadNormalizer
from .infrastructure.persistence.tables import ensure_schema
from .ingest.dedup import DuplicateFilter
from .ingest.gateway_repository import GatewayRepository
from .ingest.idempotency import IdempotencyStore
from .ingest.reading_repository import ReadingStore
from .ingest.sensor_config_repository import SensorConfigRepository
from .ingest.service import IngestionService
from .jobs.maintenance import MaintenanceSweeper
from .rate_limiter import IngestRateLimiter, RateLimitConfig
from .realtime.socketio import Broadcaster

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    settings: Settings
    engine: Engine
    cache: EphemeralCache
    broadcaster: Broadcaster
    gateways: GatewayRepository
    readings: ReadingStore
    sensor_configs: SensorConfigRepository
    alerts: AlertRepository
    ingestion: IngestionService
    evaluation: AlertEvaluationService
    processor: AsyncAlertProcessor
    sweeper: MaintenanceSweeper
    idempotency: IdempotencyStore
    rate_limiter: IngestRateLimiter
    health: HealthChecker
    redis_connection: Optional[RedisConnection] = None
    owns_engine: bool = False

    def start(self) -> None:
        ensure_schema(self.engine)
        self.processor.start()
        self.sweeper.start()

    def close(self) -> None:
        self.sweeper.stop()
        self.processor.stop(drain=True)
        if self.redis_connection is not None:
            self.redis_connection.disconnect()
        if self.owns_engine:
            self.engine.dispose()
        logger.info("[APP] Recursos liberados")


def build_container(
    settings: Settings,
    broadcaster: Broadcaster,
    engine: Optional[Engine] = None,
    redis_client: Optional[redis.Redis] = None,
) -> ServiceContainer:
    """Construye el grafo de componentes.

    ``engine`` y ``redis_client`` permiten inyectar dobles en tests; si no
    se pasan se crean desde ``settings``.
    """
    redis_connection = None
    owns_engine = engine is None
    if engine is None:
        engine = create_db_engine(settings)
    if redis_client is None:
        redis_connection = RedisConnection(settings.redis_url, settings.cache_timeout_seconds)
        redis_connection.connect()
        redis_client = redis_connection.client

    cache = EphemeralCache(redis_client)
    stats = Stats()

    duplicate_filter = DuplicateFilter(
        cache,
        engine,
        window_seconds=settings.duplicate_window_seconds,
        tolerance_seconds=settings.duplicate_tolerance_seconds,
    )
    gateways = GatewayRepository(engine)
    readings = ReadingStore(engine, gateways, duplicate_filter)
    sensor_configs = SensorConfigRepository(engine)
    alerts = AlertRepository(engine, settings.alert_retention_seconds)

    dispatcher = AlertDispatcher(
        AlertSuppressor(cache, settings.alert_dedup_window_seconds),
        alerts,
        broadcaster,
    )
    evaluation = AlertEvaluationService(
        engine,
        sensor_configs,
        dispatcher,
        evaluator=AlertEvaluator(),
        history_limit=settings.history_limit,
        history_window_minutes=settings.history_window_minutes,
    )
    processor = AsyncAlertProcessor(
        evaluation,
        max_queue_size=settings.alert_queue_size,
        num_workers=settings.alert_workers,
    )

    return ServiceContainer(
        settings=settings,
        engine=engine,
        cache=cache,
        broadcaster=broadcaster,
        gateways=gateways,
        readings=readings,
        sensor_configs=sensor_configs,
        alerts=alerts,
        ingestion=IngestionService(PayloadNormalizer(), duplicate_filter, readings, stats),
        evaluation=evaluation,
        processor=processor,
        sweeper=MaintenanceSweeper(
            alerts,
            gateways,
            interval_seconds=settings.alert_purge_interval_seconds,
            gateway_offline_after_seconds=settings.gateway_offline_after_seconds,
        ),
        idempotency=IdempotencyStore(cache, settings.idempotency_ttl_seconds),
        rate_limiter=IngestRateLimiter(cache, RateLimitConfig.from_settings(settings)),
        health=HealthChecker(engine, cache),
        redis_connection=redis_connection,
        owns_engine=owns_engine,
    )
