# --------------------------------------------------------------
# File: __init__.py
# Description: Exposición pública de los módulos del núcleo del mensajero.
# --------------------------------------------------------------
"""Inicializa el paquete `messenger` y documenta sus módulos principales."""

__all__ = [
    "config",
    "crypto_sign",
    "crypto_sym",
    "envelope",
    "exceptions",
    "identity",
    "kdf",
    "keystore",
    "ledger",
    "models",
    "proof",
    "session",
    "storage",
]
