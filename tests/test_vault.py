"""
Vault tests.

Round trips for both envelope versions, tamper detection, wrong passwords and
malformed envelopes.
"""

import dataclasses

import pytest
from argon2.exceptions import HashingError

from walleth import vault as vault_module
from walleth.errors import AuthenticationFailure, UnsupportedEnvelopeVersion
from walleth.vault import (
    ENVELOPE_V1,
    ENVELOPE_V2,
    MAX_MEMORY_COST,
    NONCE_SIZE,
    SALT_SIZE,
    TAG_SIZE,
    Envelope,
    KdfParams,
    Vault,
    decrypt,
    derive_key,
    encrypt,
)

from .conftest import FAST_KDF

PLAINTEXT = b"keychain bytes \x00\x01\x02"
PASSWORD = "correct horse battery staple"


@pytest.fixture(params=[ENVELOPE_V1, ENVELOPE_V2], ids=["aes-gcm", "chacha20"])
def vault(request):
    return Vault(kdf_params=FAST_KDF, version=request.param)


class TestRoundTrip:

    def test_encrypt_decrypt(self, vault):
        envelope = vault.encrypt(PLAINTEXT, PASSWORD)
        assert envelope.version == vault.version
        assert vault.decrypt(envelope, PASSWORD) == PLAINTEXT
        assert vault.decrypt(envelope.to_bytes(), PASSWORD) == PLAINTEXT

    def test_empty_plaintext(self, vault):
        blob = vault.encrypt(b"", PASSWORD).to_bytes()
        assert vault.decrypt(blob, PASSWORD) == b""

    def test_bytes_password(self, vault):
        blob = vault.encrypt(PLAINTEXT, PASSWORD.encode()).to_bytes()
        assert vault.decrypt(blob, PASSWORD) == PLAINTEXT

    def test_layout(self, vault):
        envelope = vault.encrypt(PLAINTEXT, PASSWORD)
        blob = envelope.to_bytes()
        assert blob[0] == vault.version
        assert len(envelope.salt) == SALT_SIZE
        assert len(envelope.nonce) == NONCE_SIZE
        assert len(envelope.tag) == TAG_SIZE
        assert len(blob) == len(envelope.header()) + len(PLAINTEXT) + TAG_SIZE
        assert Envelope.from_bytes(blob) == envelope

    def test_fresh_salt_and_nonce(self, vault):
        a = vault.encrypt(PLAINTEXT, PASSWORD)
        b = vault.encrypt(PLAINTEXT, PASSWORD)
        assert a.salt != b.salt
        assert a.nonce != b.nonce
        assert a.ciphertext != b.ciphertext

    def test_decrypt_uses_envelope_settings(self, vault):
        blob = vault.encrypt(PLAINTEXT, PASSWORD).to_bytes()
        other = Vault(kdf_params=KdfParams(time_cost=2, memory_cost=16, parallelism=2),
                      version=ENVELOPE_V2 if vault.version == ENVELOPE_V1 else ENVELOPE_V1)
        assert other.decrypt(blob, PASSWORD) == PLAINTEXT


class TestAuthentication:

    def test_wrong_password(self, vault):
        blob = vault.encrypt(PLAINTEXT, PASSWORD).to_bytes()
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(blob, "wrong password")

    def test_tampered_ciphertext(self, vault):
        blob = bytearray(vault.encrypt(PLAINTEXT, PASSWORD).to_bytes())
        blob[-TAG_SIZE - 1] ^= 0x01
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(bytes(blob), PASSWORD)

    def test_tampered_tag(self, vault):
        blob = bytearray(vault.encrypt(PLAINTEXT, PASSWORD).to_bytes())
        blob[-1] ^= 0x01
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(bytes(blob), PASSWORD)

    def test_tampered_header(self, vault):
        envelope = vault.encrypt(PLAINTEXT, PASSWORD)
        blob = bytearray(envelope.to_bytes())
        # last nonce byte sits right before the ciphertext
        blob[len(envelope.header()) - 1] ^= 0x01
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(bytes(blob), PASSWORD)

    def test_tampered_kdf_params(self, vault):
        blob = bytearray(vault.encrypt(PLAINTEXT, PASSWORD).to_bytes())
        blob[4] ^= 0x01  # time_cost low byte
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(bytes(blob), PASSWORD)


class TestMalformed:

    def test_unknown_version(self, vault):
        blob = bytearray(vault.encrypt(PLAINTEXT, PASSWORD).to_bytes())
        blob[0] = 0x7F
        with pytest.raises(UnsupportedEnvelopeVersion):
            vault.decrypt(bytes(blob), PASSWORD)

    def test_unknown_version_for_new_vault(self):
        with pytest.raises(UnsupportedEnvelopeVersion):
            Vault(version=9)

    def test_empty(self, vault):
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(b"", PASSWORD)

    def test_truncated(self, vault):
        blob = vault.encrypt(PLAINTEXT, PASSWORD).to_bytes()
        for cut in (1, 5, 12, 30, len(blob) - len(PLAINTEXT) - 1):
            with pytest.raises(AuthenticationFailure):
                vault.decrypt(blob[:cut], PASSWORD)

    def test_absurd_kdf_params_rejected_before_hashing(self, vault):
        blob = bytearray(vault.encrypt(PLAINTEXT, PASSWORD).to_bytes())
        blob[5:9] = (2**32 - 1).to_bytes(4, "big")  # memory_cost
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(bytes(blob), PASSWORD)

    def test_memory_cost_bit_flip_rejected_before_hashing(self):
        envelope = Vault(kdf_params=KdfParams()).encrypt(PLAINTEXT, PASSWORD)
        blob = bytearray(envelope.to_bytes())
        blob[6] ^= 0x20  # memory_cost 0x00010000 -> 0x00210000 KiB
        assert KdfParams.from_bytes(bytes(blob[1:10])).memory_cost > MAX_MEMORY_COST
        with pytest.raises(AuthenticationFailure):
            decrypt(bytes(blob), PASSWORD)


class TestEnvelopeObjects:
    """Envelope instances get the same checks as parsed bytes."""

    def test_weak_kdf_params(self, vault):
        envelope = vault.encrypt(PLAINTEXT, PASSWORD)
        weakened = dataclasses.replace(envelope, kdf=KdfParams(1, 1, 1))
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(weakened, PASSWORD)

    def test_oversized_kdf_params(self, vault):
        envelope = vault.encrypt(PLAINTEXT, PASSWORD)
        costly = dataclasses.replace(envelope, kdf=KdfParams(1, MAX_MEMORY_COST + 1, 1))
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(costly, PASSWORD)

    @pytest.mark.parametrize("field, value", [
        ("nonce", b"\x00" * (NONCE_SIZE - 1)),
        ("tag", b"\x00" * (TAG_SIZE + 1)),
        ("salt", b"\x00" * 4),
    ])
    def test_bad_field_lengths(self, vault, field, value):
        envelope = dataclasses.replace(vault.encrypt(PLAINTEXT, PASSWORD), **{field: value})
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(envelope, PASSWORD)

    def test_unknown_version(self, vault):
        envelope = dataclasses.replace(vault.encrypt(PLAINTEXT, PASSWORD), version=9)
        with pytest.raises(UnsupportedEnvelopeVersion):
            vault.decrypt(envelope, PASSWORD)

    def test_kdf_errors_become_authentication_failures(self, vault, monkeypatch):
        envelope = vault.encrypt(PLAINTEXT, PASSWORD)

        def failing_hash(**kwargs):
            raise HashingError("memory allocation error")

        monkeypatch.setattr(vault_module, "hash_secret_raw", failing_hash)
        with pytest.raises(AuthenticationFailure):
            vault.decrypt(envelope, PASSWORD)


class TestDefaults:

    def test_module_helpers_use_default_params(self):
        envelope = encrypt(PLAINTEXT, PASSWORD)
        assert envelope.version == ENVELOPE_V1
        assert envelope.kdf == KdfParams()
        assert decrypt(envelope.to_bytes(), PASSWORD) == PLAINTEXT


class TestKdf:

    def test_derive_key_deterministic(self):
        salt = b"\x01" * SALT_SIZE
        a = derive_key(PASSWORD, salt, FAST_KDF)
        b = derive_key(PASSWORD, salt, FAST_KDF)
        assert a == b
        assert len(a) == 32
        assert derive_key("other", salt, FAST_KDF) != a

    @pytest.mark.parametrize("params", [
        KdfParams(time_cost=0, memory_cost=8, parallelism=1),
        KdfParams(time_cost=1, memory_cost=7, parallelism=1),
        KdfParams(time_cost=1, memory_cost=8, parallelism=2),
        KdfParams(time_cost=1, memory_cost=64, parallelism=0),
    ])
    def test_invalid_params(self, params):
        with pytest.raises(ValueError):
            Vault(kdf_params=params)

    def test_params_bytes_roundtrip(self):
        assert KdfParams.from_bytes(FAST_KDF.to_bytes()) == FAST_KDF
