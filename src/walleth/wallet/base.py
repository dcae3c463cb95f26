"""
Wallet capability - what the Keychain needs from any wallet kind.

Concrete kinds implement key derivation, self-serialization and wiping;
signing and verification come for free on top of account_at().
"""

import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Optional, Union

from ..utils import BytesLike
from .keys import Account, Keypair
from .path import DerivationPath
from .signer import Signature, sign, verify

logger = logging.getLogger(__name__)

PathLike = Union[DerivationPath, str, int]


class MultiKeyPair(ABC):
    """
    Base class for wallets the Keychain can manage.

    Subclasses set KIND (a unique u8 tag used in keychain serialization)
    and implement the abstract methods.
    """

    KIND: ClassVar[int]
    KIND_NAME: ClassVar[str]

    @abstractmethod
    def account_at(self, path: PathLike) -> Keypair:
        """
        Derive the keypair at a path or index.

        Returns a new Keypair owned by the caller; wiping it must not touch
        the wallet's own key material.
        """

    @abstractmethod
    def serialize(self) -> bytes:
        """Bytes from which deserialize() rebuilds an equivalent wallet."""

    @classmethod
    @abstractmethod
    def deserialize(cls, payload: bytes) -> "MultiKeyPair":
        """Rebuild a wallet from serialize() output. Raises SerializationError."""

    @property
    @abstractmethod
    def accounts(self) -> list:
        """Public Accounts derived so far."""

    @property
    @abstractmethod
    def fingerprint(self) -> bytes:
        """Identifies the key material; equal for wallets holding the same keys."""

    @abstractmethod
    def wipe(self) -> None:
        """Overwrite all secret material held by the wallet."""

    @property
    @abstractmethod
    def is_wiped(self) -> bool:
        """True once wipe() has run."""

    # ============================================
    # Derived capabilities
    # ============================================

    def private_key_at(self, path: PathLike) -> bytes:
        """
        Get the private key at a path.

        WARNING: Handle with extreme care! Only for signing.
        """
        with self.account_at(path) as keypair:
            return keypair.private_key

    def public_key_at(self, path: PathLike) -> bytes:
        with self.account_at(path) as keypair:
            return keypair.public_key

    def address_at(self, path: PathLike) -> str:
        with self.account_at(path) as keypair:
            return keypair.address

    def sign(self, path: Union[PathLike, Account, Keypair], message: BytesLike) -> Signature:
        """Sign a message with the account at a path (or a derived account)."""
        with self.account_at(_path_of(path)) as keypair:
            return sign(keypair, message)

    def verify(
        self,
        path: Union[PathLike, Account, Keypair],
        message: BytesLike,
        signature: Union[Signature, BytesLike, str],
    ) -> bool:
        """Verify a signature against the account at a path."""
        with self.account_at(_path_of(path)) as keypair:
            account = keypair.account
        return verify(account, message, signature)

    # ============================================
    # Scoped destruction
    # ============================================

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        try:
            self.wipe()
        except AttributeError:
            # __init__ never completed
            pass


def _path_of(value) -> PathLike:
    if isinstance(value, (Account, Keypair)):
        return value.path
    return value


# ============================================
# Wallet kind registry
# ============================================

_WALLET_KINDS: dict[int, type] = {}


def register_wallet_kind(cls: type) -> type:
    """
    Register a MultiKeyPair subclass for keychain deserialization.

    Usable as a class decorator. Raises ValueError on a tag clash.
    """
    kind = cls.KIND
    if not isinstance(kind, int) or not 0 <= kind <= 0xFF:
        raise ValueError(f"Wallet kind tag must fit in a u8, got {kind!r}")
    existing = _WALLET_KINDS.get(kind)
    if existing is not None and existing is not cls:
        raise ValueError(f"Wallet kind {kind} already registered to {existing.__name__}")
    _WALLET_KINDS[kind] = cls
    logger.debug(f"Registered wallet kind {kind} -> {cls.__name__}")
    return cls


def wallet_kind(kind: int) -> Optional[type]:
    """Look up a registered wallet class by tag (None if unknown)."""
    return _WALLET_KINDS.get(kind)
