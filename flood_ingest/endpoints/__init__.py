"""Routers HTTP del servicio (uno por área)."""
