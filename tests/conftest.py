"""
Shared fixtures:
- Known mnemonics and their BIP-44 accounts
- Cheap Argon2 parameters so vault tests stay fast
"""

import pytest

from walleth import HDKey, KdfParams, Keychain, PrivateKeyWallet, Vault

MNEMONIC = (
    "grocery belt target explain clay essay focus spatial skull brain measure matrix "
    "toward visual protect owner stone scale slim ghost panda exact combine game"
)

# Well-known development mnemonic with published m/44'/60'/0'/0/i accounts
TEST_MNEMONIC = "test test test test test test test test test test test junk"
TEST_ACCOUNTS = [
    (
        "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
        "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80",
    ),
    (
        "0x70997970C51812dc3A010C7d01b50e0d17dc79C8",
        "59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d",
    ),
]

FAST_KDF = KdfParams(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def hdkey():
    """HD wallet from the scenario mnemonic."""
    wallet = HDKey.from_mnemonic(MNEMONIC)
    yield wallet
    wallet.wipe()


@pytest.fixture
def test_hdkey():
    wallet = HDKey.from_mnemonic(TEST_MNEMONIC)
    yield wallet
    wallet.wipe()


@pytest.fixture
def key_wallet():
    """Single-key wallet holding the first development account's key."""
    wallet = PrivateKeyWallet.from_hex(TEST_ACCOUNTS[0][1])
    yield wallet
    wallet.wipe()


@pytest.fixture
def fast_vault():
    return Vault(kdf_params=FAST_KDF)


@pytest.fixture
def keychain():
    chain = Keychain()
    yield chain
    chain.wipe()
