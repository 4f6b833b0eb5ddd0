# --------------------------------------------------------------
# File: crypto_sym.py
# Description: Primitivas AES-256-GCM y SHA-256 usadas por el sobre y el almacén.
# --------------------------------------------------------------
"""Rutinas de cifrado simétrico autenticado."""

import hashlib
import os
from typing import Optional, Tuple

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32


def sha256(data: bytes) -> bytes:
    """Devuelve el digest SHA-256 de `data`."""

    return hashlib.sha256(data).digest()


def aes_gcm_encrypt_with_key(
    key: bytes, plaintext: bytes, aad: Optional[bytes] = None
) -> Tuple[bytes, bytes, bytes]:
    """Cifra datos con AES-GCM utilizando una clave proporcionada.

    Args:
        key (bytes): Clave simétrica de 256 bits.
        plaintext (bytes): Datos a cifrar.
        aad (Optional[bytes]): Datos autenticados adicionales.

    Returns:
        Tuple[bytes, bytes, bytes]: Ciphertext sin etiqueta, nonce y tag.

    """

    nonce = os.urandom(NONCE_SIZE)
    ct_full = AESGCM(key).encrypt(nonce, plaintext, aad)
    return ct_full[:-TAG_SIZE], nonce, ct_full[-TAG_SIZE:]


def aes_gcm_decrypt_with_key(
    key: bytes, nonce: bytes, ciphertext: bytes, tag: bytes, aad: Optional[bytes] = None
) -> bytes:
    """Descifra y verifica datos AES-GCM.

    Args:
        key (bytes): Clave simétrica que protege los datos.
        nonce (bytes): Vector de inicialización de 96 bits.
        ciphertext (bytes): Datos cifrados sin etiqueta.
        tag (bytes): Etiqueta de autenticación de 128 bits.
        aad (Optional[bytes]): Datos autenticados adicionales.

    Returns:
        bytes: Mensaje original en claro.

    Raises:
        cryptography.exceptions.InvalidTag: Si la etiqueta no verifica.

    """

    return AESGCM(key).decrypt(nonce, ciphertext + tag, aad)
