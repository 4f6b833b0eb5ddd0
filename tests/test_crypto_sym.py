# --------------------------------------------------------------
# File: test_crypto_sym.py
# Description: Pruebas del cifrado y descifrado simétrico con AES-GCM.
# --------------------------------------------------------------

import os

import pytest
from cryptography.exceptions import InvalidTag

from messenger.crypto_sym import aes_gcm_decrypt_with_key, aes_gcm_encrypt_with_key


def test_aes_gcm_roundtrip_ok():
    """Comprueba que un cifrado con AES-GCM pueda revertirse correctamente."""
    key = os.urandom(32)
    plaintext = os.urandom(128)
    ct, nonce, tag = aes_gcm_encrypt_with_key(key, plaintext)
    assert (len(nonce), len(tag)) == (12, 16)
    assert aes_gcm_decrypt_with_key(key, nonce, ct, tag) == plaintext


def test_aes_gcm_detects_tampering_nonce():
    """Comprueba que modificar el nonce provoque fallo en la autenticación."""
    key = os.urandom(32)
    ct, nonce, tag = aes_gcm_encrypt_with_key(key, b"msg")
    bad_nonce = bytes([nonce[0] ^ 1]) + nonce[1:]
    with pytest.raises(InvalidTag):
        aes_gcm_decrypt_with_key(key, bad_nonce, ct, tag)


def test_aes_gcm_binds_associated_data():
    """Los datos asociados deben coincidir al descifrar."""
    key = os.urandom(32)
    ct, nonce, tag = aes_gcm_encrypt_with_key(key, b"msg", aad=b"0xaa|0xbb")
    assert aes_gcm_decrypt_with_key(key, nonce, ct, tag, aad=b"0xaa|0xbb") == b"msg"
    with pytest.raises(InvalidTag):
        aes_gcm_decrypt_with_key(key, nonce, ct, tag, aad=b"0xaa|0xcc")
