"""Servicio de ingesta de lecturas de sensores y alertas de inundación."""

__version__ = "0.4.0"
