from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url

from .config import Settings


logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings) -> Engine:
    """Crea el engine del almacén durable.

    No hay engine global: el bootstrap del proceso lo crea, lo inyecta en los
    repositorios y lo libera en el shutdown.
    """
    url = make_url(settings.database_url)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Crear engine dialect=%s host=%s db=%s",
        url.get_backend_name(),
        url.host,
        url.database,
    )

    timeout = settings.db_pool_timeout_seconds
    backend = url.get_backend_name()

    kwargs = {"pool_pre_ping": True, "future": True}
    if backend == "sqlite":
        # Los endpoints síncronos corren en el threadpool de FastAPI.
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout}
    else:
        kwargs["pool_timeout"] = timeout
        if backend == "postgresql":
            kwargs["connect_args"] = {
                "connect_timeout": max(1, int(timeout)),
                "options": f"-c statement_timeout={int(timeout * 1000)}",
            }

    engine = create_engine(url, **kwargs)

    # Test de conexión: ayuda a ver en logs si el servicio realmente llega a la BD
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return engine
