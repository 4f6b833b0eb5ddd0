# --------------------------------------------------------------
# File: keystore.py
# Description: Almacén confidencial de identificadores con lectura restringida al propietario.
# --------------------------------------------------------------
"""Almacén confidencial de valores de un solo uso.

El almacén guarda un valor por handle y sólo lo entrega al principal
propietario que presente una prueba de autorización válida. El valor nunca
sale en claro: se recifra para la clave X25519 efímera nombrada en la
prueba, de forma que sólo quien generó esa clave puede abrirlo.

El remitente que hace `commit` no conserva acceso de lectura; la lista de
acceso de cada handle contiene únicamente al destinatario.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey

from messenger import config
from messenger.crypto_sign import x25519_generate_keypair
from messenger.crypto_sym import TAG_SIZE, aes_gcm_decrypt_with_key, aes_gcm_encrypt_with_key
from messenger.exceptions import CryptoFault, Unauthorized, UnknownHandle
from messenger.identity import normalize_principal
from messenger.kdf import derive_app_key, hkdf_sha256
from messenger.models import AuthorizationProof, SealedValue
from messenger.proof import verify_proof
from messenger.storage import load_db, save_db

logger = logging.getLogger(__name__)

HANDLE_SIZE = 32
SEAL_INFO = b"cipherlab-messenger/reencrypt"


def new_handle() -> str:
    return "0x" + os.urandom(HANDLE_SIZE).hex()


def seal_for(value: bytes, recipient_public_key: bytes, handle: str) -> SealedValue:
    """Recifra `value` para una clave pública X25519.

    Args:
        value (bytes): Valor en claro.
        recipient_public_key (bytes): Clave X25519 efímera del solicitante.
        handle (str): Handle del valor, ligado como datos asociados.

    Returns:
        SealedValue: Clave efímera del almacén, nonce y ciphertext con tag.

    """

    ephemeral_private, ephemeral_public = x25519_generate_keypair()
    shared_secret = X25519PrivateKey.from_private_bytes(ephemeral_private).exchange(
        X25519PublicKey.from_public_bytes(recipient_public_key)
    )
    key = hkdf_sha256(shared_secret, SEAL_INFO)
    ciphertext, nonce, tag = aes_gcm_encrypt_with_key(key, value, aad=handle.encode())
    return SealedValue(ephemeral_public_key=ephemeral_public, nonce=nonce, ciphertext=ciphertext + tag)


def open_sealed(sealed: SealedValue, private_key: bytes, handle: str) -> bytes:
    """Abre un :class:`SealedValue` con la clave X25519 privada efímera.

    Raises:
        cryptography.exceptions.InvalidTag: Si la clave o el handle no corresponden.

    """

    shared_secret = X25519PrivateKey.from_private_bytes(private_key).exchange(
        X25519PublicKey.from_public_bytes(sealed.ephemeral_public_key)
    )
    key = hkdf_sha256(shared_secret, SEAL_INFO)
    return aes_gcm_decrypt_with_key(
        key, sealed.nonce, sealed.ciphertext[:-TAG_SIZE], sealed.ciphertext[-TAG_SIZE:], aad=handle.encode()
    )


class ConfidentialKeyStore(ABC):
    """Servicio que guarda un valor confidencial por handle."""

    store_id: str

    @abstractmethod
    def commit(self, value: bytes, owner: str) -> str:
        """Guarda `value` legible sólo por `owner` y devuelve su handle."""

    @abstractmethod
    def resolve(self, handle: str, proof: AuthorizationProof) -> SealedValue:
        """Entrega el valor recifrado si la prueba autoriza al propietario.

        Raises:
            Unauthorized: Si la prueba es inválida, ha expirado, no nombra
                el handle o su principal no es el propietario.

        """

    @abstractmethod
    def owner_of(self, handle: str) -> str:
        """Principal propietario del handle (información pública)."""


class LocalKeyStore(ConfidentialKeyStore):
    """Implementación de referencia respaldada por memoria o por un archivo JSON.

    Los valores se cifran en reposo con AES-GCM bajo una clave derivada de
    ``MESSENGER_SECRET``, ligada al handle y al propietario.
    """

    _DEFAULT: Dict[str, Any] = {"values": {}}

    def __init__(
        self,
        path: Optional[str] = None,
        store_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
        max_duration_days: Optional[int] = None,
    ) -> None:
        self.path = path
        self.store_id = store_id or config.STORE_ID
        self.clock = clock
        self.max_duration_days = (
            config.PROOF_MAX_DURATION_DAYS if max_duration_days is None else max_duration_days
        )
        self._memory: Dict[str, Any] = {"values": {}}
        self._lock = threading.Lock()
        self._sealing_key = derive_app_key(f"keystore:{self.store_id}")

    def _load(self) -> Dict[str, Any]:
        if self.path is None:
            return self._memory
        return load_db(self.path, self._DEFAULT)

    def _save(self, db: Dict[str, Any]) -> None:
        if self.path is not None:
            save_db(db, self.path)

    @staticmethod
    def _aad(handle: str, owner: str) -> bytes:
        return f"{handle}|{owner}".encode()

    def commit(self, value: bytes, owner: str) -> str:
        """Guarda un identificador para su propietario.

        Args:
            value (bytes): Identificador en bruto.
            owner (str): Principal con derecho de lectura.

        Returns:
            str: Handle opaco y público.

        Raises:
            InvalidRecipient: Si el propietario no es un principal válido.
            CryptoFault: Si `value` está vacío.

        """

        owner = normalize_principal(owner)
        if not value:
            raise CryptoFault("No se puede guardar un valor vacío")
        handle = new_handle()
        ciphertext, nonce, tag = aes_gcm_encrypt_with_key(
            self._sealing_key, bytes(value), aad=self._aad(handle, owner)
        )
        with self._lock:
            db = self._load()
            db.setdefault("values", {})[handle] = {
                "owner": owner,
                "nonce": nonce.hex(),
                "ct": ciphertext.hex(),
                "tag": tag.hex(),
            }
            self._save(db)
        logger.info("Valor confidencial %s guardado para %s", handle, owner)
        return handle

    def owner_of(self, handle: str) -> str:
        entry = self._load().get("values", {}).get(handle)
        if entry is None:
            raise UnknownHandle("Handle desconocido", {"handle": handle})
        return entry["owner"]

    def resolve(self, handle: str, proof: AuthorizationProof) -> SealedValue:
        """Verifica la prueba y devuelve el identificador recifrado."""

        now = int(self.clock())
        principal = verify_proof(proof, self.store_id, now, self.max_duration_days)
        if handle not in proof.request.handles:
            raise Unauthorized("La prueba no nombra este handle", {"handle": handle})

        entry = self._load().get("values", {}).get(handle)
        if entry is None:
            raise UnknownHandle("Handle desconocido", {"handle": handle})
        owner = entry.get("owner")
        if owner is None:
            raise CryptoFault("Entrada confidencial sin propietario", {"handle": handle})
        if principal != owner:
            logger.warning("Acceso denegado a %s para %s", handle, principal)
            raise Unauthorized(
                "El principal no es propietario del handle",
                {"handle": handle, "principal": principal},
            )

        try:
            value = aes_gcm_decrypt_with_key(
                self._sealing_key,
                bytes.fromhex(entry["nonce"]),
                bytes.fromhex(entry["ct"]),
                bytes.fromhex(entry["tag"]),
                aad=self._aad(handle, owner),
            )
        except (InvalidTag, KeyError, TypeError, ValueError) as exc:
            raise CryptoFault("Valor confidencial corrupto en reposo", {"handle": handle}) from exc

        logger.info("Handle %s resuelto para %s", handle, principal)
        return seal_for(value, proof.request.ephemeral_public_key, handle)
