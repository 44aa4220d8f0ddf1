"""
Tests for key derivation and memory encryption.
"""

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ara_vault.crypto import (
    NONCE_SIZE,
    aead_decrypt,
    aead_encrypt,
    decrypt_memory,
    derive_memory_key,
    derive_shared_key,
    encrypt_memory,
    from_b64,
    memory_hash,
    public_point,
    to_b64,
    verify_memory_hash,
)
from ara_vault.errors import IntegrityFailure


def _flip(data: bytes, index: int = 0) -> bytes:
    out = bytearray(data)
    out[index] ^= 0x01
    return bytes(out)


class TestKeyDerivation:
    """HKDF memory keys."""

    def test_deterministic(self, agent_key):
        assert derive_memory_key(agent_key, "42") == derive_memory_key(agent_key, "42")

    def test_key_is_32_bytes(self, agent_key):
        assert len(derive_memory_key(agent_key, "42")) == 32

    def test_context_separates_keys(self, agent_key):
        assert derive_memory_key(agent_key, "42") != derive_memory_key(agent_key, "43")

    def test_secret_separates_keys(self, agent_key):
        other = bytes(reversed(agent_key))
        assert derive_memory_key(agent_key, "42") != derive_memory_key(other, "42")

    def test_matches_hkdf_parameters(self, agent_key):
        """Salt and info strings are fixed so keys stay compatible across clients."""
        expected = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"pentagon-ainft-42",
            info=b"ainft-memory-encryption",
        ).derive(agent_key)
        assert derive_memory_key(agent_key, "42") == expected

    @pytest.mark.parametrize("secret", [b"", b"short", b"x" * 65, "not-bytes-at-all-123456"])
    def test_invalid_secret_rejected(self, secret):
        with pytest.raises(ValueError):
            derive_memory_key(secret, "42")

    def test_shared_key_agrees(self):
        alice = ec.generate_private_key(ec.SECP256R1()).private_numbers().private_value.to_bytes(32, "big")
        bob = ec.generate_private_key(ec.SECP256R1()).private_numbers().private_value.to_bytes(32, "big")

        ab = derive_shared_key(alice, public_point(bob))
        ba = derive_shared_key(bob, public_point(alice, compressed=True))

        assert ab == ba
        assert len(ab) == 32

    def test_shared_key_rejects_bad_point(self):
        scalar = (7).to_bytes(32, "big")
        with pytest.raises(ValueError):
            derive_shared_key(scalar, b"\x04" + b"\x00" * 64)

    def test_shared_key_rejects_bad_scalar_length(self):
        with pytest.raises(ValueError):
            derive_shared_key(b"\x01" * 31, public_point((7).to_bytes(32, "big")))


class TestMemoryCipher:
    """AES-GCM encryption with an independent plaintext hash."""

    @pytest.fixture
    def key(self, agent_key):
        return derive_memory_key(agent_key, "42")

    @pytest.mark.parametrize("content", ["hello", "", "multi\nline", "émoji 🧠 memory", "x" * 10_000])
    def test_round_trip(self, key, content):
        blob = encrypt_memory(content, key)
        assert decrypt_memory(blob.ciphertext, blob.nonce, key) == content

    def test_hash_binds_plaintext(self, key):
        blob = encrypt_memory("hello", key)
        assert blob.hash == memory_hash("hello")
        assert verify_memory_hash("hello", blob.hash)
        assert not verify_memory_hash("hello!", blob.hash)

    def test_hash_is_deterministic_nonce_is_not(self, key):
        a = encrypt_memory("same content", key)
        b = encrypt_memory("same content", key)

        assert a.hash == b.hash
        assert a.nonce != b.nonce
        assert a.ciphertext != b.ciphertext
        assert len(a.nonce) == NONCE_SIZE

    def test_hash_match_is_exact(self):
        assert verify_memory_hash("hello", memory_hash("hello"))
        assert not verify_memory_hash("hello", memory_hash("hello").upper())

    def test_tampered_ciphertext_rejected(self, key):
        blob = encrypt_memory("secret memory", key)
        for index in (0, len(blob.ciphertext) // 2, len(blob.ciphertext) - 1):
            with pytest.raises(IntegrityFailure):
                decrypt_memory(_flip(blob.ciphertext, index), blob.nonce, key)

    def test_tampered_nonce_rejected(self, key):
        blob = encrypt_memory("secret memory", key)
        with pytest.raises(IntegrityFailure):
            decrypt_memory(blob.ciphertext, _flip(blob.nonce), key)

    def test_wrong_nonce_length_rejected(self, key):
        blob = encrypt_memory("secret memory", key)
        with pytest.raises(IntegrityFailure):
            decrypt_memory(blob.ciphertext, blob.nonce[:8], key)

    def test_wrong_key_rejected(self, key, agent_key):
        blob = encrypt_memory("secret memory", key)
        with pytest.raises(IntegrityFailure):
            decrypt_memory(blob.ciphertext, blob.nonce, derive_memory_key(agent_key, "43"))

    def test_associated_data_is_authenticated(self, key):
        nonce, ciphertext = aead_encrypt(key, b"payload", b"header")
        assert aead_decrypt(key, nonce, ciphertext, b"header") == b"payload"
        with pytest.raises(IntegrityFailure):
            aead_decrypt(key, nonce, ciphertext, b"other")

    def test_short_key_rejected(self):
        with pytest.raises(ValueError):
            encrypt_memory("hello", b"\x00" * 16)


class TestBase64:

    def test_round_trip(self):
        data = bytes(range(256))
        assert from_b64(to_b64(data)) == data

    @pytest.mark.parametrize("text", ["not base64!", "abc", "@@@@"])
    def test_invalid_rejected(self, text):
        with pytest.raises(ValueError):
            from_b64(text)
