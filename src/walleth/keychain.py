"""
Keychain - Multi-wallet container.

Holds any number of wallets of any registered kind, each under a stable
identifier, and serializes the whole collection to a canonical byte layout:

    [format_version:u8][next_id:uvarint][wallet_count:uvarint]
    {[kind_tag:u8][wallet_id:uvarint][payload_len:uvarint][payload]}*

next_id is the id the next added wallet receives, so ids removed before a
save are not handed out again after a restore.

The keychain does no locking of its own; serialize mutations externally when
sharing one across threads.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, Union

from .errors import (
    DuplicateSeed,
    KeychainLocked,
    SerializationError,
    WalletNotFound,
)
from .observable import Observable
from .utils import (
    BytesLike,
    ByteReader,
    encode_len_prefixed,
    encode_uvarint,
    same_address,
    zeroize,
)
from .vault import Vault
from .wallet.base import MultiKeyPair, PathLike, wallet_kind
from .wallet.keys import Keypair
from .wallet.signer import Signature

logger = logging.getLogger(__name__)


KEYCHAIN_FORMAT_VERSION = 1

WalletFactory = Callable[[Optional[Any]], MultiKeyPair]


@dataclass(frozen=True)
class WalletHandle:
    """Stable reference to a wallet inside one keychain."""
    id: int

    @property
    def label(self) -> str:
        """Format for display: W001"""
        return f"W{self.id:03d}"

    def __int__(self) -> int:
        return self.id

    def __str__(self) -> str:
        return self.label


@dataclass
class KeychainState:
    """Public snapshot of the keychain, delivered to subscribers."""
    wallets: list = field(default_factory=list)    # WalletHandle, insertion order
    accounts: list = field(default_factory=list)   # Account, by wallet then derivation order
    locked: bool = False


class Keychain:
    """
    Ordered collection of wallets with a uniform signing interface.

    Usage:
        keychain = Keychain()
        handle = keychain.add(hdkey_factory, mnemonic)
        keypair = keychain.account_at(handle, 0)
        signature = keychain.sign(handle, 0, b"Hello")

        blob = keychain.backup("password")
        restored = Keychain.restore(blob, "password")
    """

    def __init__(self, allow_duplicates: bool = False):
        """
        Args:
            allow_duplicates: Accept a wallet whose key material is already
                present (default: reject with DuplicateSeed)
        """
        self.allow_duplicates = allow_duplicates
        self._wallets: dict[int, MultiKeyPair] = {}
        self._next_id = 1
        self._locked_envelope: Optional[bytes] = None
        self._store: Observable[KeychainState] = Observable(KeychainState())

    # ============================================
    # Collection
    # ============================================

    def add(self, factory: WalletFactory, seed: Optional[Any] = None) -> WalletHandle:
        """
        Build a wallet with factory(seed) and register it.

        Args:
            factory: e.g. hdkey_factory or private_key_factory
            seed: Passed through to the factory (mnemonic, key, or None)

        Raises:
            DuplicateSeed: same key material already present
            Whatever the factory raises (e.g. InvalidMnemonic)
        """
        self._check_unlocked()
        wallet = factory(seed)
        try:
            return self.add_wallet(wallet)
        except DuplicateSeed:
            wallet.wipe()
            raise

    def add_wallet(self, wallet: MultiKeyPair) -> WalletHandle:
        """Register an already-built wallet."""
        self._check_unlocked()
        if not self.allow_duplicates:
            fingerprint = wallet.fingerprint
            for wallet_id, existing in self._wallets.items():
                if existing.fingerprint == fingerprint:
                    logger.warning(f"Rejected duplicate wallet (already W{wallet_id:03d})")
                    raise DuplicateSeed(
                        f"Wallet key material already present as W{wallet_id:03d}"
                    )

        handle = self._insert(wallet, self._next_id)
        logger.debug(f"Added {wallet.KIND_NAME} wallet {handle}")
        self._emit()
        return handle

    def _insert(self, wallet: MultiKeyPair, wallet_id: int) -> WalletHandle:
        self._wallets[wallet_id] = wallet
        self._next_id = max(self._next_id, wallet_id + 1)
        return WalletHandle(wallet_id)

    def remove(self, handle: Union[WalletHandle, int]) -> MultiKeyPair:
        """
        Evict a wallet and hand it back to the caller.

        The wallet is returned intact; wipe it (or use it as a context
        manager) once done. Raises: WalletNotFound
        """
        self._check_unlocked()
        wallet_id = self._resolve(handle)
        wallet = self._wallets.pop(wallet_id)
        logger.debug(f"Removed wallet W{wallet_id:03d}")
        self._emit()
        return wallet

    def discard(self, handle: Union[WalletHandle, int]) -> None:
        """Evict a wallet and wipe its secrets."""
        self.remove(handle).wipe()

    def get(self, handle: Union[WalletHandle, int]) -> MultiKeyPair:
        """Look up a wallet. Raises: WalletNotFound"""
        self._check_unlocked()
        return self._wallets[self._resolve(handle)]

    def handles(self) -> list:
        """All wallet handles, in insertion order."""
        return [WalletHandle(wallet_id) for wallet_id in self._wallets]

    def _resolve(self, handle: Union[WalletHandle, int]) -> int:
        wallet_id = handle.id if isinstance(handle, WalletHandle) else handle
        if wallet_id not in self._wallets:
            raise WalletNotFound(f"Unknown wallet: {handle}")
        return wallet_id

    def __len__(self) -> int:
        return len(self._wallets)

    def __contains__(self, handle) -> bool:
        wallet_id = handle.id if isinstance(handle, WalletHandle) else handle
        return wallet_id in self._wallets

    def __iter__(self) -> Iterator[WalletHandle]:
        return iter(self.handles())

    # ============================================
    # Accounts & Signing
    # ============================================

    def account_at(self, handle: Union[WalletHandle, int], path: PathLike) -> Keypair:
        """Derive an account of a wallet and publish it in the state."""
        keypair = self.get(handle).account_at(path)
        if keypair.account not in self._store.state.accounts:
            self._emit()
        return keypair

    def sign(self, handle: Union[WalletHandle, int], path: PathLike, message: BytesLike) -> Signature:
        return self.get(handle).sign(path, message)

    def verify(self, handle: Union[WalletHandle, int], path: PathLike,
               message: BytesLike, signature: Union[Signature, BytesLike, str]) -> bool:
        return self.get(handle).verify(path, message, signature)

    def find_by_address(self, address: str) -> tuple:
        """
        Find an already-derived account by its 0x address.

        Returns: (WalletHandle, Keypair). Raises: WalletNotFound
        """
        self._check_unlocked()
        for wallet_id, wallet in self._wallets.items():
            for account in wallet.accounts:
                if same_address(account.address, address):
                    return WalletHandle(wallet_id), wallet.account_at(account.path)
        raise WalletNotFound(f"No derived account for address {address}")

    # ============================================
    # Serialization
    # ============================================

    def serialize(self) -> bytes:
        """Canonical bytes of every wallet, in insertion order."""
        self._check_unlocked()
        out = bytearray([KEYCHAIN_FORMAT_VERSION])
        out += encode_uvarint(self._next_id)
        out += encode_uvarint(len(self._wallets))
        for wallet_id, wallet in self._wallets.items():
            out.append(wallet.KIND)
            out += encode_uvarint(wallet_id)
            out += encode_len_prefixed(wallet.serialize())
        return bytes(out)

    @classmethod
    def deserialize(cls, data: BytesLike, allow_duplicates: bool = False) -> "Keychain":
        """
        Rebuild a keychain from serialize() output, keeping wallet ids.

        Raises: SerializationError (nothing is returned on failure)
        """
        keychain = cls(allow_duplicates=allow_duplicates)
        keychain._load(data)
        keychain._emit()
        return keychain

    def _load(self, data: BytesLike) -> None:
        """Populate an empty keychain from serialized bytes; all or nothing."""
        loaded: dict[int, MultiKeyPair] = {}
        reader = ByteReader(data)
        try:
            version = reader.u8()
            if version != KEYCHAIN_FORMAT_VERSION:
                raise SerializationError(f"Unsupported keychain format version: {version}")
            next_id = reader.uvarint()

            for _ in range(reader.uvarint()):
                kind = reader.u8()
                wallet_id = reader.uvarint()
                payload = reader.len_prefixed()

                wallet_cls = wallet_kind(kind)
                if wallet_cls is None:
                    raise SerializationError(f"Unknown wallet kind tag: {kind}")
                if wallet_id == 0 or wallet_id in loaded:
                    raise SerializationError(f"Invalid or repeated wallet id: {wallet_id}")
                if wallet_id >= next_id:
                    raise SerializationError(f"Wallet id {wallet_id} not below next id {next_id}")
                loaded[wallet_id] = wallet_cls.deserialize(payload)

            if not reader.eof():
                raise SerializationError(f"{reader.remaining} trailing bytes after keychain")
        except SerializationError:
            for wallet in loaded.values():
                wallet.wipe()
            raise

        for wallet_id, wallet in loaded.items():
            self._insert(wallet, wallet_id)
        self._next_id = max(self._next_id, next_id)
        logger.debug(f"Loaded {len(loaded)} wallets")

    # ============================================
    # Encryption
    # ============================================

    def backup(self, password: str, vault: Optional[Vault] = None) -> bytes:
        """Serialize and encrypt the keychain; returns envelope bytes."""
        vault = vault or Vault()
        return vault.encrypt(self.serialize(), password).to_bytes()

    @classmethod
    def restore(cls, data: BytesLike, password: str, vault: Optional[Vault] = None,
                allow_duplicates: bool = False) -> "Keychain":
        """
        Decrypt and deserialize a backup.

        Raises: AuthenticationFailure, UnsupportedEnvelopeVersion, SerializationError
        """
        vault = vault or Vault()
        plaintext = bytearray(vault.decrypt(data, password))
        try:
            return cls.deserialize(plaintext, allow_duplicates=allow_duplicates)
        finally:
            zeroize(plaintext)

    @property
    def is_locked(self) -> bool:
        return self._locked_envelope is not None

    def lock(self, password: str, vault: Optional[Vault] = None) -> bytes:
        """
        Encrypt the keychain and wipe every wallet from memory.

        Returns the envelope bytes (also kept for unlock()).
        """
        envelope = self.backup(password, vault)
        for wallet in self._wallets.values():
            wallet.wipe()
        self._wallets.clear()
        self._locked_envelope = envelope
        self._store.set_state(KeychainState(locked=True))
        logger.debug("Keychain locked")
        return envelope

    def unlock(self, password: str, vault: Optional[Vault] = None) -> list:
        """
        Decrypt the locked keychain back into memory.

        Returns the restored accounts. Raises: AuthenticationFailure
        """
        if self._locked_envelope is None:
            return list(self._store.state.accounts)
        vault = vault or Vault()
        plaintext = bytearray(vault.decrypt(self._locked_envelope, password))
        try:
            self._load(plaintext)
        finally:
            zeroize(plaintext)
        self._locked_envelope = None
        self._emit()
        logger.debug("Keychain unlocked")
        return list(self._store.state.accounts)

    def _check_unlocked(self) -> None:
        if self._locked_envelope is not None:
            raise KeychainLocked("Keychain is locked")

    def wipe(self) -> None:
        """Wipe every wallet and empty the keychain."""
        for wallet in self._wallets.values():
            wallet.wipe()
        self._wallets.clear()
        self._emit()

    # ============================================
    # State
    # ============================================

    @property
    def state(self) -> KeychainState:
        return self._store.state

    def subscribe(self, callback: Callable[[KeychainState], None]) -> int:
        """Call callback(state) after every change; returns a subscription id."""
        return self._store.subscribe(callback)

    def unsubscribe(self, subscription_id: int) -> None:
        self._store.unsubscribe(subscription_id)

    def _emit(self) -> None:
        accounts = []
        for wallet in self._wallets.values():
            accounts.extend(wallet.accounts)
        self._store.set_state(KeychainState(
            wallets=self.handles(),
            accounts=accounts,
            locked=self.is_locked,
        ))

    def __repr__(self) -> str:
        if self.is_locked:
            return "Keychain(locked)"
        return f"Keychain({len(self._wallets)} wallets)"
