# --------------------------------------------------------------
# File: session.py
# Description: Protocolo de descifrado autenticado del destinatario.
# --------------------------------------------------------------
"""Sesión de descifrado: prueba → resolución → descifrado.

Cada intento es independiente. El par X25519 efímero y la prueba firmada
existen sólo durante :meth:`DecryptSession.run` y se descartan al terminar.
Cualquier fallo deja la sesión en ``FAILED`` y se propaga sin texto en
claro ni material de clave parcial.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Dict, Iterable, Optional, Union

from cryptography.exceptions import InvalidTag

from messenger import config, envelope
from messenger.crypto_sign import x25519_generate_keypair
from messenger.exceptions import MessengerError, Unauthorized
from messenger.identity import Identity, normalize_principal
from messenger.keystore import ConfidentialKeyStore, open_sealed
from messenger.models import AuthorizationProof, MessageRecord
from messenger.proof import build_request, sign_request

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    REQUESTED = "requested"
    PROOF_BUILT = "proof_built"
    RESOLVED = "resolved"
    COMPLETED = "completed"
    FAILED = "failed"


class DecryptSession:
    """Un intento de descifrado de un registro para su destinatario.

    Args:
        identity (Identity): Capacidad de firma del destinatario.
        recipient (str): Principal destinatario del registro.
        record (MessageRecord): Registro leído del ledger.
        keystore (ConfidentialKeyStore): Almacén que custodia el identificador.
        clock (Callable[[], float]): Fuente de tiempo para la ventana de validez.
        duration_days (Optional[int]): Duración pedida para la prueba.

    """

    def __init__(
        self,
        identity: Identity,
        recipient: str,
        record: MessageRecord,
        keystore: ConfidentialKeyStore,
        clock: Callable[[], float] = time.time,
        duration_days: Optional[int] = None,
    ) -> None:
        self.identity = identity
        self.recipient = normalize_principal(recipient)
        self.record = record
        self.keystore = keystore
        self.clock = clock
        self.duration_days = config.PROOF_DURATION_DAYS if duration_days is None else duration_days
        self.state = SessionState.REQUESTED
        self.failed_in: Optional[SessionState] = None
        self.error: Optional[MessengerError] = None

    def _fail(self, exc: MessengerError) -> None:
        self.failed_in = self.state
        self.state = SessionState.FAILED
        self.error = exc
        logger.info(
            "Sesión para %s falló en %s: %s",
            self.recipient,
            self.failed_in.value,
            exc.__class__.__name__,
        )

    def run(self) -> bytes:
        """Ejecuta el protocolo completo y devuelve el mensaje en claro.

        Raises:
            Unauthorized: Si la identidad no controla al destinatario o el
                almacén rechaza la prueba.
            AuthenticationFailure: Si el identificador recuperado no verifica
                el ciphertext. No se reintenta.
            MalformedCiphertext: Si el ciphertext almacenado es inválido.
            RuntimeError: Si la sesión ya se ejecutó.

        """

        if self.state is not SessionState.REQUESTED:
            raise RuntimeError("Cada sesión de descifrado sólo puede ejecutarse una vez")
        try:
            if self.identity.principal != self.recipient:
                raise Unauthorized(
                    "El firmante debe coincidir con el destinatario",
                    {"signer": self.identity.principal, "recipient": self.recipient},
                )

            private_key, public_key = x25519_generate_keypair()
            handle = self.record.key_handle
            proof = self._build_proof(public_key, [handle])
            self.state = SessionState.PROOF_BUILT

            sealed = self.keystore.resolve(handle, proof)
            try:
                identifier = open_sealed(sealed, private_key, handle)
            except InvalidTag as exc:
                raise Unauthorized("El valor recifrado no corresponde a esta sesión") from exc
            self.state = SessionState.RESOLVED

            plaintext = envelope.decrypt(self.record.ciphertext, identifier)
        except MessengerError as exc:
            self._fail(exc)
            raise
        self.state = SessionState.COMPLETED
        return plaintext

    def _build_proof(self, ephemeral_public_key: bytes, handles) -> AuthorizationProof:
        request = build_request(
            self.identity,
            ephemeral_public_key,
            handles,
            self.keystore.store_id,
            int(self.clock()),
            self.duration_days,
        )
        return sign_request(self.identity, request)


def decrypt_many(
    identity: Identity,
    recipient: str,
    records: Dict[int, MessageRecord],
    keystore: ConfidentialKeyStore,
    clock: Callable[[], float] = time.time,
    duration_days: Optional[int] = None,
) -> Dict[int, Union[bytes, MessengerError]]:
    """Descifra varios registros con una sola prueba firmada.

    Args:
        identity (Identity): Capacidad de firma del destinatario.
        recipient (str): Principal destinatario.
        records (Dict[int, MessageRecord]): Registros indexados por su posición.
        keystore (ConfidentialKeyStore): Almacén confidencial.
        clock (Callable[[], float]): Fuente de tiempo.
        duration_days (Optional[int]): Duración de la prueba.

    Returns:
        Dict[int, Union[bytes, MessengerError]]: Texto en claro o el error de
        cada registro; el fallo de uno no afecta a los demás.

    """

    recipient = normalize_principal(recipient)
    if identity.principal != recipient:
        raise Unauthorized(
            "El firmante debe coincidir con el destinatario",
            {"signer": identity.principal, "recipient": recipient},
        )
    if not records:
        return {}

    private_key, public_key = x25519_generate_keypair()
    handles = _unique(record.key_handle for record in records.values())
    request = build_request(
        identity,
        public_key,
        handles,
        keystore.store_id,
        int(clock()),
        config.PROOF_DURATION_DAYS if duration_days is None else duration_days,
    )
    proof = sign_request(identity, request)

    results: Dict[int, Union[bytes, MessengerError]] = {}
    for index, record in records.items():
        try:
            sealed = keystore.resolve(record.key_handle, proof)
            try:
                identifier = open_sealed(sealed, private_key, record.key_handle)
            except InvalidTag as exc:
                raise Unauthorized("El valor recifrado no corresponde a esta sesión") from exc
            results[index] = envelope.decrypt(record.ciphertext, identifier)
        except MessengerError as exc:
            logger.info("Registro %d de %s no descifrado: %s", index, recipient, exc.__class__.__name__)
            results[index] = exc
    return results


def _unique(values: Iterable[str]) -> list:
    seen: list = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
