# --------------------------------------------------------------
# File: kdf.py
# Description: Derivación de claves: Argon2id y HKDF.
# --------------------------------------------------------------
"""Funciones de derivación de claves del mensajero."""

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from messenger import config


def derive_kek(
    passphrase: str,
    salt: bytes,
    *,
    t: int = 3,
    m: int = 64 * 1024,
    p: int = 1,
    outlen: int = 32,
) -> bytes:
    """Deriva una clave de cifrado (KEK) usando Argon2id.

    Args:
        passphrase (str): Passphrase que protege la identidad.
        salt (bytes): Salt aleatoria asociada a la passphrase.
        t (int): Coste temporal en iteraciones Argon2id.
        m (int): Memoria en KiB consumida durante la derivación.
        p (int): Paralelismo configurado para Argon2id.
        outlen (int): Longitud en bytes de la clave resultante.

    Returns:
        bytes: Clave simétrica derivada.

    """

    return hash_secret_raw(
        passphrase.encode("utf-8"),
        salt,
        time_cost=t,
        memory_cost=m,
        parallelism=p,
        hash_len=outlen,
        type=Type.ID,
    )


def hkdf_sha256(shared_secret: bytes, info: bytes, length: int = 32) -> bytes:
    """Deriva una clave simétrica desde un secreto compartido X25519."""

    return HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,
        info=info,
    ).derive(shared_secret)


def derive_app_key(purpose: str, length: int = 32) -> bytes:
    """Deriva una clave de propósito fijo a partir de `MESSENGER_SECRET`.

    Args:
        purpose (str): Etiqueta que separa claves de usos distintos.
        length (int): Longitud en bytes de la clave resultante.

    Returns:
        bytes: Clave HKDF-SHA256 con `purpose` como `info`.

    """

    return hkdf_sha256(config.MESSENGER_SECRET, purpose.encode("utf-8"), length)
