# --------------------------------------------------------------
# File: exceptions.py
# Description: Jerarquía de errores del mensajero cifrado.
# --------------------------------------------------------------
"""Taxonomía de errores expuesta por el paquete `messenger`."""

from __future__ import annotations

from typing import Any, Dict, Optional


class MessengerError(Exception):
    """Error base de todas las operaciones del mensajero."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte el error en un diccionario serializable a JSON."""

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class CryptoFault(MessengerError):
    """Fallo de una primitiva criptográfica o de la fuente de entropía."""


class AuthenticationFailure(MessengerError):
    """La etiqueta AEAD no verifica: ciphertext alterado o identificador erróneo."""


class MalformedCiphertext(MessengerError):
    """El ciphertext no respeta el formato `iv.body.tag`."""


class InvalidRecipient(MessengerError):
    """Principal nulo, cero o con formato inválido."""


class EmptyCiphertext(MessengerError):
    """Se intentó anotar un mensaje sin ciphertext."""


class IndexOutOfRange(MessengerError):
    """Lectura más allá de la longitud del registro del destinatario."""


class Unauthorized(MessengerError):
    """El almacén confidencial rechazó la prueba de autorización."""


class InvalidProof(Unauthorized):
    """Prueba con firma inválida, almacén desconocido o ventana no permitida."""


class UnknownHandle(Unauthorized):
    """El handle no existe en el almacén confidencial."""


class IdentityError(MessengerError):
    """Fallo al registrar o desbloquear una identidad del llavero."""


class StorageCorrupted(MessengerError):
    """Un archivo de persistencia existe pero no es JSON válido."""
