"""
Wallet package - Key derivation, keypairs and signing.

Contains:
- HDKey: HD wallet with BIP-39/32/44 derivation
- PrivateKeyWallet: Single-key wallet
- MultiKeyPair: the capability both implement
- Keypair, Account: derived keys and their public view
- sign / verify / recover: recoverable secp256k1 signatures
"""

from .path import (
    DerivationPath,
    PathStep,
    ETH_BASE_PATH,
    MASTER_PATH,
    HARDENED_OFFSET,
)
from .keys import Account, Keypair, address_from_public_key
from .signer import Signature, sign, verify, recover, recover_address, digest
from .base import MultiKeyPair, register_wallet_kind, wallet_kind
from .hdkey import (
    HDKey,
    ExtendedKey,
    hdkey_factory,
    generate_mnemonic,
    validate_mnemonic,
)
from .private_key import PrivateKeyWallet, private_key_factory

__all__ = [
    # Paths
    "DerivationPath",
    "PathStep",
    "ETH_BASE_PATH",
    "MASTER_PATH",
    "HARDENED_OFFSET",
    # Keys
    "Account",
    "Keypair",
    "address_from_public_key",
    # Signing
    "Signature",
    "sign",
    "verify",
    "recover",
    "recover_address",
    "digest",
    # Wallet kinds
    "MultiKeyPair",
    "register_wallet_kind",
    "wallet_kind",
    "HDKey",
    "ExtendedKey",
    "hdkey_factory",
    "generate_mnemonic",
    "validate_mnemonic",
    "PrivateKeyWallet",
    "private_key_factory",
]
