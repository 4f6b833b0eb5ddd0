# --------------------------------------------------------------
# File: models.py
# Description: Modelos de datos comunes del mensajero cifrado.
# --------------------------------------------------------------
"""Modelos Pydantic que encapsulan estructuras de intercambio criptográfico."""

from __future__ import annotations

import base64
import binascii
from typing import List

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from messenger.crypto_sym import NONCE_SIZE, TAG_SIZE
from messenger.exceptions import MalformedCiphertext
from messenger.identity import principal_from_public_key

WIRE_SEPARATOR = "."


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _unb64(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"), validate=True)


class EnvelopeCiphertext(BaseModel):
    """Resultado de cifrar un mensaje con su clave de un solo uso.

    Attributes:
        iv (bytes): Vector de inicialización de 96 bits.
        body (bytes): Datos cifrados sin etiqueta.
        tag (bytes): Etiqueta de autenticación de 128 bits.

    """

    model_config = ConfigDict(frozen=True)

    iv: bytes
    body: bytes
    tag: bytes

    @field_validator("iv")
    @classmethod
    def _check_iv(cls, value: bytes) -> bytes:
        if len(value) != NONCE_SIZE:
            raise ValueError(f"iv debe medir {NONCE_SIZE} bytes")
        return value

    @field_validator("tag")
    @classmethod
    def _check_tag(cls, value: bytes) -> bytes:
        if len(value) != TAG_SIZE:
            raise ValueError(f"tag debe medir {TAG_SIZE} bytes")
        return value

    def to_wire(self) -> str:
        """Serializa el ciphertext como `iv.body.tag` en Base64 estándar."""

        return WIRE_SEPARATOR.join((_b64(self.iv), _b64(self.body), _b64(self.tag)))

    @classmethod
    def from_wire(cls, payload: str) -> "EnvelopeCiphertext":
        """Reconstruye el ciphertext desde su codificación `iv.body.tag`.

        Args:
            payload (str): Cadena almacenada en el registro de mensajes.

        Returns:
            EnvelopeCiphertext: Triple validado.

        Raises:
            MalformedCiphertext: Si no hay tres partes, alguna no es Base64
                válido o las longitudes de iv/tag no son las esperadas.

        """

        if not isinstance(payload, str):
            raise MalformedCiphertext("El ciphertext debe ser una cadena")
        parts = payload.split(WIRE_SEPARATOR)
        if len(parts) != 3:
            raise MalformedCiphertext(
                "Payload cifrado inválido", {"parts": len(parts)}
            )
        try:
            iv, body, tag = (_unb64(part) for part in parts)
            return cls(iv=iv, body=body, tag=tag)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise MalformedCiphertext("Base64 inválido en el ciphertext") from exc
        except ValidationError as exc:
            raise MalformedCiphertext(
                "Longitudes de iv/tag inválidas", {"errors": exc.error_count()}
            ) from exc


class MessageRecord(BaseModel):
    """Entrada inmutable del registro de un destinatario.

    Attributes:
        sender (str): Principal que envió el mensaje.
        ciphertext (str): Ciphertext en formato `iv.body.tag`.
        key_handle (str): Handle confidencial del identificador de un solo uso.
        timestamp (int): Segundos UNIX en que se anotó el mensaje.

    """

    model_config = ConfigDict(frozen=True)

    sender: str
    ciphertext: str
    key_handle: str
    timestamp: int


class AuthorizationRequest(BaseModel):
    """Mensaje tipado que el destinatario firma para pedir un descifrado."""

    model_config = ConfigDict(frozen=True)

    signer_public_key: bytes
    ephemeral_public_key: bytes
    store_ids: List[str]
    handles: List[str]
    start_timestamp: int
    duration_days: int

    @property
    def principal(self) -> str:
        return principal_from_public_key(self.signer_public_key)

    @property
    def end_timestamp(self) -> int:
        return self.start_timestamp + self.duration_days * 86400

    def to_payload(self) -> dict:
        """Representación JSON estable usada para firmar y transportar."""

        return {
            "type": "UserDecryptRequestVerification",
            "signer": self.principal,
            "signerPublicKey": _b64(self.signer_public_key),
            "publicKey": _b64(self.ephemeral_public_key),
            "storeIds": list(self.store_ids),
            "handles": list(self.handles),
            "startTimestamp": self.start_timestamp,
            "durationDays": self.duration_days,
        }


class AuthorizationProof(BaseModel):
    """Petición firmada, vinculada a un principal y limitada en el tiempo."""

    model_config = ConfigDict(frozen=True)

    request: AuthorizationRequest
    signature: bytes

    @property
    def principal(self) -> str:
        return self.request.principal


class SealedValue(BaseModel):
    """Identificador recifrado para la clave X25519 efímera del solicitante."""

    model_config = ConfigDict(frozen=True)

    ephemeral_public_key: bytes
    nonce: bytes
    ciphertext: bytes
