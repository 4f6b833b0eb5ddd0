# --------------------------------------------------------------
# File: ledger.py
# Description: Registro de mensajes por destinatario, ordenado y sólo de anexión.
# --------------------------------------------------------------
"""Registro de mensajes cifrados indexado por destinatario.

La identidad de un mensaje es posicional: ``(destinatario, índice)``. Los
índices se asignan 0, 1, 2... en orden de anexión y nunca se reutilizan.
La serialización de anexiones la aporta el backend de almacenamiento.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple

from messenger.exceptions import EmptyCiphertext, IndexOutOfRange
from messenger.identity import normalize_principal
from messenger.models import MessageRecord
from messenger.storage import load_db, save_db

logger = logging.getLogger(__name__)

RawRecord = Tuple[str, str, str, int]


class LedgerBackend(ABC):
    """Frontera de almacenamiento durable y linealizable del registro."""

    @abstractmethod
    def append(self, recipient: str, sender: str, ciphertext: str, key_handle: str, timestamp: int) -> int:
        """Anexa un registro y devuelve su índice."""

    @abstractmethod
    def count(self, recipient: str) -> int:
        """Longitud actual del registro de `recipient`."""

    @abstractmethod
    def get_at(self, recipient: str, index: int) -> RawRecord:
        """Devuelve ``(sender, ciphertext, key_handle, timestamp)``."""


class MemoryLedgerBackend(LedgerBackend):
    """Backend en memoria de proceso."""

    def __init__(self) -> None:
        self._logs: Dict[str, List[RawRecord]] = {}
        self._lock = threading.Lock()

    def append(self, recipient, sender, ciphertext, key_handle, timestamp):
        with self._lock:
            log = self._logs.setdefault(recipient, [])
            log.append((sender, ciphertext, key_handle, int(timestamp)))
            return len(log) - 1

    def count(self, recipient):
        return len(self._logs.get(recipient, ()))

    def get_at(self, recipient, index):
        return self._logs[recipient][index]


class JsonLedgerBackend(LedgerBackend):
    """Backend persistente sobre un archivo JSON con escritura atómica."""

    _DEFAULT: Dict[str, Any] = {"logs": {}}

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        return load_db(self.path, self._DEFAULT)

    def append(self, recipient, sender, ciphertext, key_handle, timestamp):
        with self._lock:
            db = self._load()
            log = db.setdefault("logs", {}).setdefault(recipient, [])
            log.append(
                {
                    "sender": sender,
                    "ciphertext": ciphertext,
                    "key_handle": key_handle,
                    "timestamp": int(timestamp),
                }
            )
            save_db(db, self.path)
            return len(log) - 1

    def count(self, recipient):
        return len(self._load().get("logs", {}).get(recipient, []))

    def get_at(self, recipient, index):
        entry = self._load()["logs"][recipient][index]
        return entry["sender"], entry["ciphertext"], entry["key_handle"], entry["timestamp"]


class MessageLedger:
    """Registro ordenado de :class:`MessageRecord` por destinatario."""

    def __init__(self, backend: LedgerBackend | None = None) -> None:
        self.backend = backend if backend is not None else MemoryLedgerBackend()

    def append(self, recipient: str, sender: str, ciphertext: str, key_handle: str, timestamp: int) -> int:
        """Anexa un mensaje al registro del destinatario.

        Las validaciones ocurren antes de tocar el backend, de modo que un
        rechazo no deja estado parcial. Dos envíos idénticos crean dos
        entradas distintas.

        Args:
            recipient (str): Principal destinatario.
            sender (str): Principal remitente.
            ciphertext (str): Ciphertext en formato `iv.body.tag`.
            key_handle (str): Handle confidencial del identificador.
            timestamp (int): Segundos UNIX del envío.

        Returns:
            int: Índice asignado, igual a la longitud previa del registro.

        Raises:
            InvalidRecipient: Si el destinatario es nulo o cero.
            EmptyCiphertext: Si el ciphertext está vacío.

        """

        recipient = normalize_principal(recipient)
        sender = normalize_principal(sender)
        if not ciphertext:
            raise EmptyCiphertext("El ciphertext no puede estar vacío")
        index = self.backend.append(recipient, sender, ciphertext, key_handle, int(timestamp))
        logger.info("Mensaje %d anexado para %s desde %s", index, recipient, sender)
        return index

    def count(self, recipient: str) -> int:
        """Número de mensajes del destinatario; 0 si nunca recibió ninguno."""

        return self.backend.count(normalize_principal(recipient))

    def get_at(self, recipient: str, index: int) -> MessageRecord:
        """Devuelve el registro ``index`` del destinatario.

        Raises:
            IndexOutOfRange: Si ``index`` no está en ``[0, count)``.

        """

        recipient = normalize_principal(recipient)
        total = self.backend.count(recipient)
        if not isinstance(index, int) or index < 0 or index >= total:
            raise IndexOutOfRange(
                "Índice fuera de rango", {"recipient": recipient, "index": index, "count": total}
            )
        sender, ciphertext, key_handle, timestamp = self.backend.get_at(recipient, index)
        return MessageRecord(
            sender=sender, ciphertext=ciphertext, key_handle=key_handle, timestamp=timestamp
        )

    def records(self, recipient: str) -> List[MessageRecord]:
        """Todos los registros del destinatario en orden de índice."""

        return [self.get_at(recipient, i) for i in range(self.count(recipient))]
