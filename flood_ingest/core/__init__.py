"""Núcleo del servicio: dominio, validación, caché y monitoreo."""
