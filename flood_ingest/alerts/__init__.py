"""Alertas: reglas, supresión, persistencia y despacho."""
