# --------------------------------------------------------------
# File: crypto_sign.py
# Description: Claves Ed25519 de identidad y claves X25519 efímeras.
# --------------------------------------------------------------
"""Abstracciones criptográficas para firma Ed25519 y acuerdo X25519."""

from typing import Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519

_RAW = serialization.Encoding.Raw
_RAW_PUB = serialization.PublicFormat.Raw


def ed25519_generate_keypair() -> Tuple[bytes, bytes]:
    """Genera un par Ed25519: clave privada PEM sin cifrar y pública en bruto.

    Returns:
        Tuple[bytes, bytes]: Clave privada PKCS8 PEM y clave pública de 32 bytes.

    """

    private_key = ed25519.Ed25519PrivateKey.generate()
    priv_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return priv_pem, private_key.public_key().public_bytes(_RAW, _RAW_PUB)


def ed25519_public_from_private(priv_pem: bytes) -> bytes:
    """Obtiene la clave pública en bruto de una clave privada PEM."""

    key = serialization.load_pem_private_key(priv_pem, password=None)
    if not isinstance(key, ed25519.Ed25519PrivateKey):
        raise TypeError("La clave privada no es Ed25519")
    return key.public_key().public_bytes(_RAW, _RAW_PUB)


def ed25519_sign(priv_pem: bytes, message: bytes) -> bytes:
    """Firma un mensaje con la clave privada Ed25519 proporcionada.

    Args:
        priv_pem (bytes): Clave privada en formato PEM sin cifrar.
        message (bytes): Mensaje que se firmará.

    Returns:
        bytes: Firma Ed25519 de 64 bytes.

    """

    key = serialization.load_pem_private_key(priv_pem, password=None)
    return key.sign(message)


def ed25519_verify(public_raw: bytes, message: bytes, signature: bytes) -> None:
    """Verifica una firma Ed25519 lanzando excepción si no es válida.

    Args:
        public_raw (bytes): Clave pública Ed25519 de 32 bytes.
        message (bytes): Mensaje original firmado.
        signature (bytes): Firma a verificar.

    Raises:
        cryptography.exceptions.InvalidSignature: Si la firma no corresponde.
        ValueError: Si la clave pública no tiene un formato válido.

    """

    public_key = ed25519.Ed25519PublicKey.from_public_bytes(public_raw)
    public_key.verify(signature, message)


def x25519_generate_keypair() -> Tuple[bytes, bytes]:
    """Genera un par X25519 efímero en bruto (privada, pública)."""

    private_key = x25519.X25519PrivateKey.generate()
    private_raw = private_key.private_bytes(
        encoding=_RAW,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return private_raw, private_key.public_key().public_bytes(_RAW, _RAW_PUB)
