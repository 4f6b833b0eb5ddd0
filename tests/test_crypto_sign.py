# --------------------------------------------------------------
# File: test_crypto_sign.py
# Description: Pruebas para las primitivas Ed25519 y X25519.
# --------------------------------------------------------------

import pytest
from cryptography.exceptions import InvalidSignature

from messenger.crypto_sign import (
    ed25519_generate_keypair,
    ed25519_public_from_private,
    ed25519_sign,
    ed25519_verify,
    x25519_generate_keypair,
)


def test_sign_verify_ok():
    """Comprueba que la firma generada sea válida con la clave correspondiente."""
    sk, pk = ed25519_generate_keypair()
    assert len(pk) == 32
    assert ed25519_public_from_private(sk) == pk
    ed25519_verify(pk, b"mensaje importante", ed25519_sign(sk, b"mensaje importante"))


def test_verify_fails_with_other_key():
    """Verifica que otra clave pública no valide la firma."""
    sk1, _ = ed25519_generate_keypair()
    _, pk2 = ed25519_generate_keypair()
    with pytest.raises(InvalidSignature):
        ed25519_verify(pk2, b"hola", ed25519_sign(sk1, b"hola"))


def test_verify_fails_if_message_tampered():
    """Comprueba que alterar el mensaje invalide la firma."""
    sk, pk = ed25519_generate_keypair()
    sig = ed25519_sign(sk, b"abc123")
    with pytest.raises(InvalidSignature):
        ed25519_verify(pk, b"abc124", sig)


def test_x25519_keypairs_are_fresh():
    pairs = {x25519_generate_keypair() for _ in range(10)}
    assert len(pairs) == 10
    assert all(len(priv) == 32 and len(pub) == 32 for priv, pub in pairs)
