"""
Private Key Wallet - a single imported keypair.

Unlike HD wallets, this can only have one account, at the master path "m"
(index 0 is accepted as an alias). The wallet keeps the scalar itself and
hands each account_at() caller a keypair of its own.
"""

import logging
import secrets
from typing import Optional, Union

from ..errors import DerivationPathError, InvalidKeyMaterial, SerializationError
from ..utils import BytesLike, decode_hex, keccak256, zeroize
from .base import MultiKeyPair, PathLike, register_wallet_kind
from .keys import Keypair, PRIVATE_KEY_SIZE, validate_private_key
from .path import MASTER_PATH, DerivationPath

logger = logging.getLogger(__name__)


@register_wallet_kind
class PrivateKeyWallet(MultiKeyPair):
    """Simple wallet from a single private key."""

    KIND = 2
    KIND_NAME = "private_key"

    def __init__(self, private_key: BytesLike):
        """Initialize wallet with a raw 32-byte private key."""
        with Keypair(private_key, MASTER_PATH) as keypair:
            self._account = keypair.account
        self._secret = bytearray(private_key)

    @classmethod
    def generate(cls) -> "PrivateKeyWallet":
        """Create a wallet with a fresh random key."""
        while True:
            candidate = secrets.token_bytes(PRIVATE_KEY_SIZE)
            try:
                validate_private_key(candidate)
            except InvalidKeyMaterial:
                continue
            return cls(candidate)

    @classmethod
    def from_hex(cls, private_key: str) -> "PrivateKeyWallet":
        """
        Create a wallet from a hex private key.

        Args:
            private_key: Hex private key (with or without 0x prefix)

        Raises: InvalidKeyMaterial
        """
        try:
            pkey_bytes = decode_hex(private_key)
        except ValueError as e:
            raise InvalidKeyMaterial("Private key is not valid hex") from e
        return cls(pkey_bytes)

    @property
    def address(self) -> str:
        """The wallet address."""
        return self._account.address

    @property
    def accounts(self) -> list:
        """List of accounts (only one for private key wallets)."""
        return [self._account]

    @property
    def fingerprint(self) -> bytes:
        return keccak256(self._account.public_key)

    def account_at(self, path: PathLike = 0) -> Keypair:
        """Get the keypair (only "m" or index 0 are valid)."""
        if self.is_wiped:
            raise InvalidKeyMaterial("Wallet has been wiped")
        if isinstance(path, bool) or not _is_master(path):
            raise DerivationPathError("Private key wallets only have one account")
        return Keypair(self._secret, MASTER_PATH)

    def serialize(self) -> bytes:
        if self.is_wiped:
            raise InvalidKeyMaterial("Wallet has been wiped")
        return bytes(self._secret)

    @classmethod
    def deserialize(cls, payload: bytes) -> "PrivateKeyWallet":
        try:
            return cls(payload)
        except InvalidKeyMaterial as e:
            raise SerializationError(f"Invalid private key payload: {e}") from e

    @property
    def is_wiped(self) -> bool:
        return not any(self._secret)

    def wipe(self) -> None:
        """Clear the private key from memory."""
        zeroize(self._secret)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PrivateKeyWallet):
            return NotImplemented
        return self._secret == other._secret

    __hash__ = None

    def __repr__(self) -> str:
        return f"PrivateKeyWallet(address={self.address})"


def _is_master(path: Union[DerivationPath, str, int]) -> bool:
    if isinstance(path, int):
        return path == 0
    try:
        return DerivationPath.coerce(path) == MASTER_PATH
    except DerivationPathError:
        return False


def private_key_factory(private_key: Optional[Union[BytesLike, str]] = None) -> PrivateKeyWallet:
    """Keychain factory: import a key (bytes or hex), or generate when None."""
    if private_key is None:
        return PrivateKeyWallet.generate()
    if isinstance(private_key, str):
        return PrivateKeyWallet.from_hex(private_key)
    return PrivateKeyWallet(private_key)
