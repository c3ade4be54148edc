"""Procesador asíncrono de evaluación de alertas.

Desacopla la respuesta de ingesta de la evaluación: el endpoint encola
(~0.01ms) y los workers evalúan en paralelo. La cola acotada da
backpressure; si se llena, la evaluación de esa lectura se descarta con
un warning y la ingesta no se entera.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 1000
DEFAULT_NUM_WORKERS = 2


class AsyncAlertProcessor:
    """Cola + hilos de trabajo sobre un procesador con ``process(reading)``."""

    def __init__(
        self,
        processor,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        num_workers: int = DEFAULT_NUM_WORKERS,
    ):
        self._processor = processor
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue_size)
        self._num_workers = num_workers
        self._stop_event = threading.Event()

        # Metrics
        self._enqueued = 0
        self._dropped = 0
        self._processed = 0
        self._errors = 0
        self._lock = threading.Lock()

        self._workers: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Start worker threads."""
        if self._workers:
            return
        self._stop_event.clear()
        for i in range(self._num_workers):
            t = threading.Thread(
                target=self._worker_loop,
                args=(i,),
                daemon=True,
                name=f"alert-worker-{i}",
            )
            t.start()
            self._workers.append(t)
        logger.info(
            "[ASYNC_PROC] Started workers=%d queue_max=%d",
            self._num_workers, self._queue.maxsize,
        )

    def stop(self, drain: bool = True) -> None:
        """Stop workers. If drain=True, process remaining items first."""
        if drain and self._workers:
            self._queue.join()
        self._stop_event.set()
        for t in self._workers:
            t.join(timeout=5.0)
        self._workers.clear()
        logger.info("[ASYNC_PROC] Stopped. %s", self.metrics)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Bloquea hasta que la cola quede vacía y procesada."""
        if not self._workers:
            return
        if timeout is None:
            self._queue.join()
            return
        done = threading.Event()

        def _join():
            self._queue.join()
            done.set()

        threading.Thread(target=_join, daemon=True).start()
        done.wait(timeout)

    def enqueue(self, reading) -> bool:
        """Enqueue reading for async evaluation. Returns False if full."""
        try:
            self._queue.put_nowait(reading)
            with self._lock:
                self._enqueued += 1
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
            logger.warning(
                "[ASYNC_PROC] Queue full, dropped sensor=%s",
                getattr(reading, "sensor_id", "?"),
            )
            return False

    def _worker_loop(self, worker_id: int) -> None:
        while not self._stop_event.is_set():
            try:
                reading = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue

            try:
                self._processor.process(reading)
                with self._lock:
                    self._processed += 1
            except Exception as e:
                with self._lock:
                    self._errors += 1
                logger.error(
                    "[ASYNC_PROC] Worker %d error: %s", worker_id, e,
                )
            finally:
                self._queue.task_done()

    @property
    def metrics(self) -> dict:
        with self._lock:
            return {
                "queue_depth": self._queue.qsize(),
                "queue_max": self._queue.maxsize,
                "workers": len(self._workers),
                "enqueued": self._enqueued,
                "dropped": self._dropped,
                "processed": self._processed,
                "errors": self._errors,
            }
