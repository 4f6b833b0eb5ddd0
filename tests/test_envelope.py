# --------------------------------------------------------------
# File: test_envelope.py
# Description: Pruebas del cifrado de sobre con identificadores de un solo uso.
# --------------------------------------------------------------

import base64
import hashlib
import os

import pytest

from messenger import envelope
from messenger.exceptions import AuthenticationFailure, CryptoFault, MalformedCiphertext
from messenger.models import EnvelopeCiphertext


def _flip(data: bytes, position: int = 0) -> bytes:
    return data[:position] + bytes([data[position] ^ 1]) + data[position + 1:]


def test_generate_identifier_is_20_random_bytes():
    """Comprueba el ancho fijo y la frescura de los identificadores."""
    ids = {envelope.generate_identifier() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(i) == 20 for i in ids)


def test_derive_key_is_sha256_of_identifier():
    """La clave es el SHA-256 de los bytes del identificador."""
    identifier = bytes(range(20))
    key = envelope.derive_key(identifier)
    assert key == hashlib.sha256(identifier).digest()
    assert len(key) == 32
    assert envelope.derive_key(identifier) == key


@pytest.mark.parametrize("bad", [b"", b"\x01" * 19, b"\x01" * 21, "x" * 20])
def test_derive_key_rejects_wrong_width(bad):
    """Identificadores de ancho incorrecto son un fallo de configuración."""
    with pytest.raises(CryptoFault):
        envelope.derive_key(bad)


@pytest.mark.parametrize("plaintext", [b"", b"a", "Meet at the blue station.".encode(), os.urandom(4096)])
def test_roundtrip(plaintext):
    """decrypt(encrypt(m, i), i) == m."""
    identifier = envelope.generate_identifier()
    ct = envelope.encrypt(plaintext, identifier)
    assert len(ct.iv) == 12
    assert len(ct.tag) == 16
    assert len(ct.body) == len(plaintext)
    assert envelope.decrypt(ct, identifier) == plaintext
    assert envelope.decrypt(ct.to_wire(), identifier) == plaintext


def test_fresh_iv_per_encryption():
    identifier = envelope.generate_identifier()
    ivs = {envelope.encrypt(b"x", identifier).iv for _ in range(200)}
    assert len(ivs) == 200


@pytest.mark.parametrize("field", ["body", "tag"])
def test_tampering_is_detected(field):
    """Alterar cualquier bit del cuerpo o del tag provoca AuthenticationFailure."""
    identifier = envelope.generate_identifier()
    ct = envelope.encrypt(b"texto confidencial", identifier)
    original = getattr(ct, field)
    for position in (0, len(original) - 1):
        tampered = ct.model_copy(update={field: _flip(original, position)})
        with pytest.raises(AuthenticationFailure):
            envelope.decrypt(tampered, identifier)


def test_wrong_identifier_is_rejected():
    i1 = envelope.generate_identifier()
    i2 = envelope.generate_identifier()
    ct = envelope.encrypt(b"hola", i1)
    with pytest.raises(AuthenticationFailure):
        envelope.decrypt(ct, i2)


def test_wire_format_is_three_base64_parts():
    """La codificación es `iv.body.tag` en Base64 estándar."""
    identifier = envelope.generate_identifier()
    ct = envelope.encrypt(b"abc", identifier)
    iv_b64, body_b64, tag_b64 = ct.to_wire().split(".")
    assert base64.b64decode(iv_b64) == ct.iv
    assert base64.b64decode(body_b64) == ct.body
    assert base64.b64decode(tag_b64) == ct.tag


def test_wire_interoperates_with_externally_built_payload():
    """Un payload construido a mano con AES-256-GCM se descifra igual."""
    from cryptography.hazmat.primitives.ciphers.aead import AESGCM

    identifier = b"\x11" * 20
    iv = os.urandom(12)
    full = AESGCM(hashlib.sha256(identifier).digest()).encrypt(iv, b"interop", None)
    payload = ".".join(
        base64.b64encode(part).decode() for part in (iv, full[:-16], full[-16:])
    )
    assert envelope.decrypt_text(payload, identifier) == "interop"


@pytest.mark.parametrize(
    "payload",
    [
        "",
        "abc",
        "a.b",
        "a.b.c.d",
        "!!!.AAAA.AAAA",
        base64.b64encode(b"short").decode() + ".AAAA." + base64.b64encode(b"\x00" * 16).decode(),
        base64.b64encode(b"\x00" * 12).decode() + ".AAAA." + base64.b64encode(b"\x00" * 8).decode(),
    ],
)
def test_malformed_payloads(payload):
    with pytest.raises(MalformedCiphertext):
        envelope.decrypt(payload, envelope.generate_identifier())


def test_ciphertext_model_rejects_bad_lengths():
    with pytest.raises(MalformedCiphertext):
        EnvelopeCiphertext.from_wire("AAAA.AAAA.AAAA")


def test_text_helpers_roundtrip():
    identifier = envelope.generate_identifier()
    payload = envelope.encrypt_text("Mañana a las 9 ✉", identifier)
    assert envelope.decrypt_text(payload, identifier) == "Mañana a las 9 ✉"


def test_decode_text_rejects_invalid_utf8():
    with pytest.raises(MalformedCiphertext):
        envelope.decode_text(b"\xff\xfe")
