"""
walleth - Hierarchical key management for Ethereum-style accounts.

Contains:
- HDKey: BIP-39 mnemonic / BIP-32 derivation wallet
- PrivateKeyWallet: Single imported key
- Keychain: Multi-wallet container with canonical serialization
- Vault: Argon2id + AEAD password encryption
- sign / verify / recover: recoverable secp256k1 signatures
- Observable: state holder with subscribers
"""

from .errors import (
    WallethError,
    InvalidMnemonic,
    DerivationPathError,
    InvalidKeyMaterial,
    InvalidSignature,
    WalletNotFound,
    DuplicateSeed,
    KeychainLocked,
    SerializationError,
    UnsupportedEnvelopeVersion,
    AuthenticationFailure,
)
from .log import configure_logging
from .observable import Observable
from .vault import Vault, Envelope, KdfParams, DEFAULT_KDF_PARAMS, ENVELOPE_V1, ENVELOPE_V2
from .wallet import (
    DerivationPath,
    ETH_BASE_PATH,
    Account,
    Keypair,
    Signature,
    sign,
    verify,
    recover,
    recover_address,
    MultiKeyPair,
    register_wallet_kind,
    HDKey,
    hdkey_factory,
    generate_mnemonic,
    PrivateKeyWallet,
    private_key_factory,
)
from .keychain import Keychain, KeychainState, WalletHandle

__version__ = "0.1.0"

__all__ = [
    # Errors
    "WallethError",
    "InvalidMnemonic",
    "DerivationPathError",
    "InvalidKeyMaterial",
    "InvalidSignature",
    "WalletNotFound",
    "DuplicateSeed",
    "KeychainLocked",
    "SerializationError",
    "UnsupportedEnvelopeVersion",
    "AuthenticationFailure",
    # Wallets
    "DerivationPath",
    "ETH_BASE_PATH",
    "Account",
    "Keypair",
    "Signature",
    "sign",
    "verify",
    "recover",
    "recover_address",
    "MultiKeyPair",
    "register_wallet_kind",
    "HDKey",
    "hdkey_factory",
    "generate_mnemonic",
    "PrivateKeyWallet",
    "private_key_factory",
    # Keychain & storage
    "Keychain",
    "KeychainState",
    "WalletHandle",
    "Vault",
    "Envelope",
    "KdfParams",
    "DEFAULT_KDF_PARAMS",
    "ENVELOPE_V1",
    "ENVELOPE_V2",
    "Observable",
    "configure_logging",
]
