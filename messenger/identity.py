# --------------------------------------------------------------
# File: identity.py
# Description: Principales, identidades Ed25519 y llavero protegido con Argon2id.
# --------------------------------------------------------------
"""Identidades firmantes y su almacenamiento cifrado por passphrase."""

from __future__ import annotations

import base64
import logging
import os
import re
from datetime import UTC, datetime
from typing import Dict, Optional

from argon2 import PasswordHasher, exceptions as argon_exc
from cryptography.exceptions import InvalidTag

from messenger import config
from messenger.crypto_sign import (
    ed25519_generate_keypair,
    ed25519_public_from_private,
    ed25519_sign,
    ed25519_verify,
)
from messenger.crypto_sym import aes_gcm_decrypt_with_key, aes_gcm_encrypt_with_key, sha256
from messenger.exceptions import IdentityError, InvalidRecipient
from messenger.kdf import derive_kek
from messenger.storage import load_db, save_db

logger = logging.getLogger(__name__)

PRINCIPAL_SIZE = 20
ZERO_PRINCIPAL = "0x" + "00" * PRINCIPAL_SIZE
_PRINCIPAL_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")

# Configuración común para derivación Argon2id de hashes y KEK.
PH = PasswordHasher(time_cost=3, memory_cost=64 * 1024, parallelism=1, hash_len=32)
KDF_PARAMS = {"t": 3, "m": 64 * 1024, "p": 1, "outlen": 32, "alg": "argon2id"}

_DEFAULT_DB = {"identities": {}}


def principal_from_public_key(public_raw: bytes) -> str:
    """Calcula la dirección de 20 bytes de una clave pública Ed25519."""

    return "0x" + sha256(public_raw)[-PRINCIPAL_SIZE:].hex()


def normalize_principal(value: Optional[str]) -> str:
    """Normaliza un principal a `0x` + 40 hexadecimales en minúscula.

    Args:
        value (Optional[str]): Principal con o sin prefijo y en cualquier caja.

    Returns:
        str: Principal canónico.

    Raises:
        InvalidRecipient: Si el valor es nulo, no es hexadecimal de 20 bytes
            o es la dirección cero.

    """

    if not value or not isinstance(value, str) or not _PRINCIPAL_RE.match(value.strip()):
        raise InvalidRecipient("Principal inválido", {"principal": value})
    value = value.strip().lower()
    normalized = value if value.startswith("0x") else f"0x{value}"
    if normalized == ZERO_PRINCIPAL:
        raise InvalidRecipient("El principal cero no es válido")
    return normalized


def is_valid_principal(value: Optional[str]) -> bool:
    try:
        normalize_principal(value)
    except InvalidRecipient:
        return False
    return True


class Identity:
    """Capacidad de firma de un principal."""

    def __init__(self, private_pem: bytes):
        self._private_pem = private_pem
        self.public_key_bytes = ed25519_public_from_private(private_pem)
        self.principal = principal_from_public_key(self.public_key_bytes)

    @classmethod
    def generate(cls) -> "Identity":
        private_pem, _ = ed25519_generate_keypair()
        return cls(private_pem)

    def sign(self, message: bytes) -> bytes:
        return ed25519_sign(self._private_pem, message)

    @staticmethod
    def verify(public_key: bytes, message: bytes, signature: bytes) -> None:
        """Lanza `InvalidSignature` si la firma no es de `public_key`."""

        ed25519_verify(public_key, message, signature)

    def private_pem(self) -> bytes:
        return self._private_pem

    def __repr__(self) -> str:
        return f"Identity({self.principal})"


def _b64u(data: bytes) -> str:
    """Codifica datos binarios en Base64 URL-safe sin relleno."""

    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _unb64u(value: str) -> bytes:
    """Decodifica datos codificados en Base64 URL-safe gestionando el relleno."""

    pad = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + pad)


def register_identity(name: str, passphrase: str) -> Identity:
    """Crea una identidad nueva y guarda su clave privada cifrada.

    Args:
        name (str): Alias local de la identidad.
        passphrase (str): Passphrase de la que se deriva la KEK.

    Returns:
        Identity: Identidad recién generada.

    Raises:
        IdentityError: Si faltan datos o el alias ya existe.

    """

    if not name or not passphrase:
        raise IdentityError("Nombre y passphrase son obligatorios.")

    db = load_db(config.IDENTITIES_PATH, _DEFAULT_DB)
    if name in db["identities"]:
        raise IdentityError("Ya existe una identidad con ese nombre.", {"name": name})

    identity = Identity.generate()
    salt = os.urandom(16)

    # Deriva la KEK que protegerá la clave privada de firma.
    kek = derive_kek(
        passphrase,
        salt,
        t=KDF_PARAMS["t"],
        m=KDF_PARAMS["m"],
        p=KDF_PARAMS["p"],
        outlen=KDF_PARAMS["outlen"],
    )
    ciphertext, nonce, tag = aes_gcm_encrypt_with_key(
        kek, identity.private_pem(), aad=identity.principal.encode()
    )

    db.setdefault("identities", {})[name] = {
        "principal": identity.principal,
        "public_key": _b64u(identity.public_key_bytes),
        "salt": _b64u(salt),
        "pwd_hash": PH.hash(passphrase),
        "kdf_params": KDF_PARAMS,
        "enc_private_key": {
            "nonce": _b64u(nonce),
            "tag": _b64u(tag),
            "ct": _b64u(ciphertext),
        },
        "created_at": datetime.now(UTC).isoformat(),
    }
    save_db(db, config.IDENTITIES_PATH)
    logger.info("Identidad %s registrada como %s", name, identity.principal)
    return identity


def unlock_identity(name: str, passphrase: str) -> Identity:
    """Desbloquea una identidad del llavero.

    Raises:
        IdentityError: Si la identidad no existe, la passphrase es incorrecta
            o la clave privada no se puede descifrar.

    """

    db = load_db(config.IDENTITIES_PATH, _DEFAULT_DB)
    record = db.get("identities", {}).get(name)
    if not record:
        raise IdentityError("Identidad no encontrada.", {"name": name})

    try:
        PH.verify(record["pwd_hash"], passphrase)
    except argon_exc.VerifyMismatchError as exc:
        raise IdentityError("Passphrase incorrecta.", {"name": name}) from exc
    except argon_exc.VerificationError as exc:
        raise IdentityError("Error verificando la passphrase.", {"name": name}) from exc

    params = record["kdf_params"]
    kek = derive_kek(
        passphrase,
        _unb64u(record["salt"]),
        t=params["t"],
        m=params["m"],
        p=params["p"],
        outlen=params["outlen"],
    )
    enc = record["enc_private_key"]
    try:
        private_pem = aes_gcm_decrypt_with_key(
            kek,
            _unb64u(enc["nonce"]),
            _unb64u(enc["ct"]),
            _unb64u(enc["tag"]),
            aad=record["principal"].encode(),
        )
    except InvalidTag as exc:
        raise IdentityError("No se ha podido descifrar la clave de la identidad.") from exc

    identity = Identity(private_pem)
    if identity.principal != record["principal"]:
        raise IdentityError("La clave no corresponde al principal registrado.")
    return identity


def list_identities() -> Dict[str, str]:
    """Devuelve el mapa alias → principal del llavero."""

    db = load_db(config.IDENTITIES_PATH, _DEFAULT_DB)
    return {name: rec["principal"] for name, rec in db.get("identities", {}).items()}
