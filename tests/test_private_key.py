"""
Single-key wallet tests.
"""

import gc

import pytest

from walleth.errors import DerivationPathError, InvalidKeyMaterial, SerializationError
from walleth.wallet import PrivateKeyWallet, address_from_public_key, private_key_factory
from walleth.wallet.path import MASTER_PATH

from .conftest import TEST_ACCOUNTS


class TestPrivateKeyWallet:

    def test_from_hex(self, key_wallet):
        address, private_key = TEST_ACCOUNTS[0]
        assert key_wallet.address == address
        assert key_wallet.private_key_at(0).hex() == private_key

    def test_hex_with_prefix(self):
        address, private_key = TEST_ACCOUNTS[1]
        assert PrivateKeyWallet.from_hex("0x" + private_key).address == address

    @pytest.mark.parametrize("value", ["", "0x1234", "zz" * 32, "00" * 32])
    def test_invalid_hex(self, value):
        with pytest.raises(InvalidKeyMaterial):
            PrivateKeyWallet.from_hex(value)

    def test_only_master_account(self, key_wallet):
        assert key_wallet.account_at(0) == key_wallet.account_at("m")
        assert key_wallet.account_at(MASTER_PATH).path == MASTER_PATH
        for path in (1, "m/0", "m/44'/60'/0'/0/0", True):
            with pytest.raises(DerivationPathError):
                key_wallet.account_at(path)

    def test_accounts(self, key_wallet):
        [account] = key_wallet.accounts
        assert account.address == key_wallet.address
        assert address_from_public_key(account.public_key) == key_wallet.address

    def test_sign_and_verify(self, key_wallet):
        signature = key_wallet.sign(0, b"Hello")
        assert key_wallet.verify(0, b"Hello", signature)
        assert not key_wallet.verify(0, b"Goodbye", signature)

    def test_generate_is_random(self):
        assert PrivateKeyWallet.generate().address != PrivateKeyWallet.generate().address

    def test_serialization_roundtrip(self, key_wallet):
        payload = key_wallet.serialize()
        assert len(payload) == 32
        assert PrivateKeyWallet.deserialize(payload) == key_wallet

    @pytest.mark.parametrize("payload", [b"", b"\x01" * 31, bytes(32)])
    def test_bad_payload(self, payload):
        with pytest.raises(SerializationError):
            PrivateKeyWallet.deserialize(payload)

    def test_wipe(self, key_wallet):
        keypair = key_wallet.account_at(0)
        key_wallet.wipe()
        assert key_wallet.is_wiped
        assert not keypair.is_wiped
        with pytest.raises(InvalidKeyMaterial):
            key_wallet.account_at(0)
        with pytest.raises(InvalidKeyMaterial):
            key_wallet.serialize()

    def test_scoped_keypair_leaves_wallet_usable(self, key_wallet):
        with key_wallet.account_at(0) as keypair:
            key_wallet.sign(keypair, b"Hello")
        assert keypair.is_wiped
        assert not key_wallet.is_wiped
        assert key_wallet.account_at(0).private_key.hex() == TEST_ACCOUNTS[0][1]

    def test_keypair_outlives_temporary_wallet(self):
        keypair = PrivateKeyWallet.from_hex(TEST_ACCOUNTS[1][1]).account_at(0)
        gc.collect()
        assert not keypair.is_wiped
        assert keypair.address == TEST_ACCOUNTS[1][0]


class TestFactory:

    def test_import_hex_and_bytes(self):
        address, private_key = TEST_ACCOUNTS[0]
        assert private_key_factory(private_key).address == address
        assert private_key_factory(bytes.fromhex(private_key)).address == address

    def test_generate_when_none(self):
        wallet = private_key_factory(None)
        assert not wallet.is_wiped

    def test_local_account_interop(self, key_wallet):
        local = key_wallet.account_at(0).to_local_account()
        assert local.address == key_wallet.address
