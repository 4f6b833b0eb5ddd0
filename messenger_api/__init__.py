# --------------------------------------------------------------
# File: __init__.py
# Description: Capa de servicios y CLI del mensajero cifrado.
# --------------------------------------------------------------
"""Inicializa el paquete `messenger_api`."""

__all__ = ["cli", "services"]
