"""Validation layer - Normalización y validación de payloads."""

from .payload_validator import PayloadNormalizer, normalize_payload, normalize_timestamp

__all__ = ["PayloadNormalizer", "normalize_payload", "normalize_timestamp"]
