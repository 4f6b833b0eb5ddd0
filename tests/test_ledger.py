# --------------------------------------------------------------
# File: test_ledger.py
# Description: Pruebas del registro de mensajes por destinatario.
# --------------------------------------------------------------

import threading

import pytest

from messenger.exceptions import EmptyCiphertext, IndexOutOfRange, InvalidRecipient, StorageCorrupted
from messenger.ledger import JsonLedgerBackend, MemoryLedgerBackend, MessageLedger

RECIPIENT = "0x" + "ab" * 20
OTHER = "0x" + "cd" * 20
SENDER = "0x" + "12" * 20


@pytest.fixture(params=["memory", "json"])
def ledger(request, tmp_path):
    """Registro sobre cada uno de los backends disponibles."""
    if request.param == "memory":
        return MessageLedger(MemoryLedgerBackend())
    return MessageLedger(JsonLedgerBackend(str(tmp_path / "ledger.json")))


def test_count_is_zero_for_unseen_recipient(ledger):
    assert ledger.count(RECIPIENT) == 0
    assert ledger.records(RECIPIENT) == []


def test_append_assigns_monotonic_indices(ledger):
    """Tras n anexiones, count == n y get_at(k) devuelve el k-ésimo registro."""
    n = 5
    for k in range(n):
        index = ledger.append(RECIPIENT, SENDER, f"ct-{k}", f"0xhandle{k}", 1000 + k)
        assert index == k
    assert ledger.count(RECIPIENT) == n
    for k in range(n):
        record = ledger.get_at(RECIPIENT, k)
        assert record.sender == SENDER
        assert record.ciphertext == f"ct-{k}"
        assert record.key_handle == f"0xhandle{k}"
        assert record.timestamp == 1000 + k


def test_logs_are_partitioned_per_recipient(ledger):
    ledger.append(RECIPIENT, SENDER, "ct-a", "h-a", 1)
    assert ledger.append(OTHER, SENDER, "ct-b", "h-b", 2) == 0
    assert ledger.count(RECIPIENT) == 1
    assert ledger.count(OTHER) == 1


def test_duplicate_sends_create_distinct_entries(ledger):
    first = ledger.append(RECIPIENT, SENDER, "same", "same-handle", 7)
    second = ledger.append(RECIPIENT, SENDER, "same", "same-handle", 7)
    assert (first, second) == (0, 1)
    assert ledger.count(RECIPIENT) == 2


def test_principals_are_normalized(ledger):
    ledger.append("0x" + RECIPIENT[2:].upper(), SENDER[2:], "ct", "h", 1)
    assert ledger.count(RECIPIENT) == 1
    assert ledger.get_at(RECIPIENT, 0).sender == SENDER


def test_get_at_out_of_range(ledger):
    with pytest.raises(IndexOutOfRange):
        ledger.get_at(RECIPIENT, 0)
    ledger.append(RECIPIENT, SENDER, "ct", "h", 1)
    for index in (1, 2, -1):
        with pytest.raises(IndexOutOfRange):
            ledger.get_at(RECIPIENT, index)
    assert ledger.count(RECIPIENT) == 1


@pytest.mark.parametrize("recipient", [None, "", "0x" + "00" * 20, "0x1234", "not-an-address"])
def test_invalid_recipient_rejected_without_mutation(ledger, recipient):
    with pytest.raises(InvalidRecipient):
        ledger.append(recipient, SENDER, "ct", "h", 1)
    assert ledger.count(RECIPIENT) == 0


def test_empty_ciphertext_rejected_without_mutation(ledger):
    with pytest.raises(EmptyCiphertext):
        ledger.append(RECIPIENT, SENDER, "", "h", 1)
    assert ledger.count(RECIPIENT) == 0


def test_records_are_immutable(ledger):
    ledger.append(RECIPIENT, SENDER, "ct", "h", 1)
    record = ledger.get_at(RECIPIENT, 0)
    with pytest.raises(Exception):
        record.ciphertext = "otro"
    assert ledger.get_at(RECIPIENT, 0).ciphertext == "ct"


def test_json_backend_persists_across_instances(tmp_path):
    path = str(tmp_path / "ledger.json")
    MessageLedger(JsonLedgerBackend(path)).append(RECIPIENT, SENDER, "ct", "h", 1)
    reopened = MessageLedger(JsonLedgerBackend(path))
    assert reopened.count(RECIPIENT) == 1
    assert reopened.append(RECIPIENT, SENDER, "ct2", "h2", 2) == 1


def test_concurrent_appends_get_distinct_indices(ledger):
    """Anexiones simultáneas al mismo destinatario reciben índices 0..n-1 sin huecos."""
    n = 20
    barrier = threading.Barrier(n)
    indices = []
    errors = []
    guard = threading.Lock()

    def worker(k):
        try:
            barrier.wait()
            index = ledger.append(RECIPIENT, SENDER, f"ct-{k}", f"h-{k}", k)
        except Exception as exc:
            with guard:
                errors.append(exc)
            return
        with guard:
            indices.append(index)

    threads = [threading.Thread(target=worker, args=(k,)) for k in range(n)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(indices) == list(range(n))
    assert ledger.count(RECIPIENT) == n
    assert sorted(r.ciphertext for r in ledger.records(RECIPIENT)) == sorted(f"ct-{k}" for k in range(n))


def test_corrupt_json_ledger_is_not_overwritten(tmp_path):
    """Un ledger truncado no se reinicia: append falla y el archivo queda intacto."""
    path = tmp_path / "ledger.json"
    ledger = MessageLedger(JsonLedgerBackend(str(path)))
    for k in range(3):
        ledger.append(RECIPIENT, SENDER, f"ct-{k}", f"h-{k}", k)

    raw = path.read_bytes()
    path.write_bytes(raw[:-5])

    with pytest.raises(StorageCorrupted):
        ledger.append(RECIPIENT, SENDER, "ct-3", "h-3", 3)
    with pytest.raises(StorageCorrupted):
        ledger.count(RECIPIENT)
    assert path.read_bytes() == raw[:-5]
