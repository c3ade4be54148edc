"""Excepciones del servicio de ingesta."""

from __future__ import annotations


class FloodIngestError(Exception):
    """Base de las excepciones propias del servicio."""


class ValidationError(FloodIngestError):
    """Payload malformado o campo fuera de rango.

    Siempre se reporta al llamador como 4xx nombrando el campo; nunca se reintenta.
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class StorageError(FloodIngestError):
    """Fallo al persistir una lectura en el almacén durable (fail closed)."""


class InvalidTransitionError(FloodIngestError):
    """Transición de estado de alerta no permitida."""
