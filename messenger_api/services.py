# --------------------------------------------------------------
# File: services.py
# Description: Servicio de envío y lectura de mensajes cifrados.
# --------------------------------------------------------------
"""Capa de servicios que compone sobre, almacén confidencial y registro."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from messenger import config, envelope
from messenger.exceptions import MessengerError
from messenger.identity import Identity, normalize_principal
from messenger.keystore import ConfidentialKeyStore, LocalKeyStore
from messenger.ledger import JsonLedgerBackend, MessageLedger
from messenger.models import MessageRecord
from messenger.session import DecryptSession, decrypt_many

logger = logging.getLogger(__name__)


class InboxItem:
    """Mensaje de la bandeja de entrada con su resultado de descifrado."""

    def __init__(self, index: int, record: MessageRecord, plaintext: Optional[str] = None, error=None):
        self.index = index
        self.record = record
        self.plaintext = plaintext
        self.error = error

    def __repr__(self) -> str:
        return f"InboxItem(index={self.index}, sender={self.record.sender})"


class Messenger:
    """Fachada `send` / `decrypt` sobre las fronteras de almacenamiento.

    Args:
        ledger (MessageLedger): Registro de mensajes por destinatario.
        keystore (ConfidentialKeyStore): Almacén de identificadores.
        clock (Callable[[], float]): Fuente de tiempo para marcas y pruebas.

    """

    def __init__(
        self,
        ledger: Optional[MessageLedger] = None,
        keystore: Optional[ConfidentialKeyStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger if ledger is not None else MessageLedger()
        self.keystore = keystore if keystore is not None else LocalKeyStore(clock=clock)
        self.clock = clock

    @classmethod
    def from_config(cls) -> "Messenger":
        """Construye el servicio persistente sobre `STORAGE_PATH`."""

        return cls(
            ledger=MessageLedger(JsonLedgerBackend(config.LEDGER_PATH)),
            keystore=LocalKeyStore(path=config.KEYSTORE_PATH),
        )

    def send(self, sender: Identity, recipient: str, plaintext: str) -> int:
        """Cifra y entrega un mensaje; devuelve su índice en el registro.

        Args:
            sender (Identity): Identidad del remitente.
            recipient (str): Principal destinatario.
            plaintext (str): Mensaje en claro.

        Returns:
            int: Índice del registro dentro del log del destinatario.

        """

        recipient = normalize_principal(recipient)
        identifier = envelope.generate_identifier()
        payload = envelope.encrypt_text(plaintext, identifier)
        handle = self.keystore.commit(identifier, recipient)
        del identifier
        return self.ledger.append(recipient, sender.principal, payload, handle, int(self.clock()))

    def count(self, recipient: str) -> int:
        return self.ledger.count(recipient)

    def message_at(self, recipient: str, index: int) -> MessageRecord:
        return self.ledger.get_at(recipient, index)

    def decrypt(self, identity: Identity, index: int, recipient: Optional[str] = None) -> str:
        """Recupera el texto en claro del mensaje ``index`` del destinatario.

        Raises:
            Unauthorized: Si la identidad no es el destinatario o la prueba
                es rechazada.
            AuthenticationFailure: Si el ciphertext no verifica.

        """

        recipient = normalize_principal(recipient or identity.principal)
        record = self.ledger.get_at(recipient, index)
        session = DecryptSession(identity, recipient, record, self.keystore, clock=self.clock)
        return envelope.decode_text(session.run())

    def inbox(self, identity: Identity, decrypt: bool = True) -> List[InboxItem]:
        """Bandeja de entrada del principal, de la más reciente a la más antigua."""

        records = dict(enumerate(self.ledger.records(identity.principal)))
        items = [InboxItem(index, record) for index, record in records.items()]
        if decrypt and records:
            results = decrypt_many(identity, identity.principal, records, self.keystore, clock=self.clock)
            for item in items:
                outcome = results[item.index]
                if isinstance(outcome, MessengerError):
                    item.error = outcome
                    continue
                try:
                    item.plaintext = envelope.decode_text(outcome)
                except MessengerError as exc:
                    item.error = exc
        return list(reversed(items))
