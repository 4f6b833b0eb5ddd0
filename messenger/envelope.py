# --------------------------------------------------------------
# File: envelope.py
# Description: Cifrado de sobre con una clave derivada de un identificador de un solo uso.
# --------------------------------------------------------------
"""Cifrado y descifrado de mensajes con claves de un solo uso.

Cada mensaje se cifra con AES-256-GCM bajo ``SHA-256(identificador)``,
donde el identificador son 20 bytes aleatorios que nunca se reutilizan.
El identificador no se persiste en claro: el remitente lo entrega al
almacén confidencial y sólo el destinatario puede recuperarlo.
"""

import logging
import os

from cryptography.exceptions import InvalidTag

from messenger.crypto_sym import aes_gcm_decrypt_with_key, aes_gcm_encrypt_with_key, sha256
from messenger.exceptions import AuthenticationFailure, CryptoFault, MalformedCiphertext
from messenger.models import EnvelopeCiphertext

logger = logging.getLogger(__name__)

IDENTIFIER_SIZE = 20


def generate_identifier() -> bytes:
    """Genera un identificador de un solo uso de 20 bytes."""

    try:
        return os.urandom(IDENTIFIER_SIZE)
    except NotImplementedError as exc:
        raise CryptoFault("No hay fuente de entropía disponible") from exc


def derive_key(identifier: bytes) -> bytes:
    """Deriva la clave AES de 256 bits de un identificador.

    Args:
        identifier (bytes): Identificador de un solo uso de 20 bytes.

    Returns:
        bytes: ``SHA-256(identifier)``.

    Raises:
        CryptoFault: Si el identificador no mide 20 bytes.

    """

    if not isinstance(identifier, (bytes, bytearray)) or len(identifier) != IDENTIFIER_SIZE:
        raise CryptoFault(f"El identificador debe medir {IDENTIFIER_SIZE} bytes")
    return sha256(bytes(identifier))


def encrypt(plaintext: bytes, identifier: bytes) -> EnvelopeCiphertext:
    """Cifra un mensaje sin datos asociados y con iv fresco.

    Args:
        plaintext (bytes): Cuerpo del mensaje.
        identifier (bytes): Identificador de un solo uso del mensaje.

    Returns:
        EnvelopeCiphertext: Triple (iv, body, tag).

    Raises:
        CryptoFault: Si falla la entropía o el cifrador.

    """

    key = derive_key(identifier)
    try:
        body, iv, tag = aes_gcm_encrypt_with_key(key, plaintext)
    except (NotImplementedError, OverflowError, TypeError) as exc:
        raise CryptoFault("Fallo del cifrador AES-GCM") from exc
    return EnvelopeCiphertext(iv=iv, body=body, tag=tag)


def decrypt(ciphertext, identifier: bytes) -> bytes:
    """Verifica y descifra un ciphertext.

    Args:
        ciphertext (EnvelopeCiphertext | str): Triple o su forma `iv.body.tag`.
        identifier (bytes): Identificador con el que se cifró el mensaje.

    Returns:
        bytes: Mensaje original. Nunca se devuelve texto parcial.

    Raises:
        MalformedCiphertext: Si la codificación no es válida.
        AuthenticationFailure: Si la etiqueta no verifica.

    """

    if isinstance(ciphertext, str):
        ciphertext = EnvelopeCiphertext.from_wire(ciphertext)
    elif not isinstance(ciphertext, EnvelopeCiphertext):
        raise MalformedCiphertext("Tipo de ciphertext no soportado")

    key = derive_key(identifier)
    try:
        return aes_gcm_decrypt_with_key(key, ciphertext.iv, ciphertext.body, ciphertext.tag)
    except InvalidTag as exc:
        logger.debug("Etiqueta AES-GCM inválida")
        raise AuthenticationFailure(
            "La etiqueta de autenticación no verifica"
        ) from exc


def encrypt_text(message: str, identifier: bytes) -> str:
    """Cifra texto UTF-8 y devuelve su codificación de transporte."""

    return encrypt(message.encode("utf-8"), identifier).to_wire()


def decode_text(plaintext: bytes) -> str:
    """Interpreta un mensaje descifrado como texto UTF-8."""

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedCiphertext("El mensaje descifrado no es UTF-8") from exc


def decrypt_text(payload: str, identifier: bytes) -> str:
    """Descifra un payload `iv.body.tag` a texto UTF-8."""

    return decode_text(decrypt(payload, identifier))
