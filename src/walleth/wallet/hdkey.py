"""
HD Key - BIP-39 mnemonics and BIP-32 hierarchical derivation.

Industry-standard derivation:
- BIP-39 seed phrases (English wordlist)
- BIP-32 private (hardened and normal) and public-only child derivation
- BIP-44 default path for Ethereum accounts: m/44'/60'/0'/0/{index}

Derived nodes are memoized by path and wiped together with the seed. Each
account_at() call hands out a fresh Keypair that the caller owns and may wipe
without affecting the wallet.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

from coincurve import PrivateKey, PublicKey
from eth_account.hdaccount.deterministic import derive_child_key
from eth_utils import ValidationError
from mnemonic import Mnemonic

from ..errors import DerivationPathError, InvalidKeyMaterial, InvalidMnemonic, SerializationError
from ..utils import (
    BytesLike,
    ByteReader,
    encode_len_prefixed,
    encode_uvarint,
    keccak256,
    public_key_to_address,
    zeroize,
)
from .base import MultiKeyPair, PathLike, register_wallet_kind
from .keys import Account, Keypair, SECP256K1_N, validate_private_key
from .path import ETH_BASE_PATH, MASTER_PATH, DerivationPath, PathStep

logger = logging.getLogger(__name__)


# ============================================
# Constants
# ============================================

BIP32_SEED_KEY = b"Bitcoin seed"
MIN_SEED_SIZE = 16   # 128 bits
MAX_SEED_SIZE = 64   # 512 bits

MNEMONIC_LANGUAGE = "english"
# word count -> entropy bits
MNEMONIC_STRENGTHS = {12: 128, 15: 160, 18: 192, 21: 224, 24: 256}
DEFAULT_WORD_COUNT = 12

_FLAG_HAS_MNEMONIC = 0x01


def _hmac_sha512(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha512).digest()


# ============================================
# Mnemonic helpers
# ============================================

def normalize_mnemonic(phrase: str) -> str:
    return " ".join(phrase.lower().split())


def validate_mnemonic(phrase: str) -> str:
    """
    Check word count, wordlist membership and checksum.

    Returns the normalized phrase. Raises: InvalidMnemonic
    """
    if not isinstance(phrase, str):
        raise InvalidMnemonic("Mnemonic must be a string")
    normalized = normalize_mnemonic(phrase)
    words = normalized.split(" ")
    if len(words) not in MNEMONIC_STRENGTHS:
        raise InvalidMnemonic(f"Mnemonic must have 12-24 words, got {len(words)}")
    mnemo = Mnemonic(MNEMONIC_LANGUAGE)
    if not mnemo.check(normalized):
        raise InvalidMnemonic("Invalid mnemonic: unknown word or bad checksum")
    return normalized


def generate_mnemonic(word_count: int = DEFAULT_WORD_COUNT) -> str:
    """Generate a fresh English mnemonic from OS randomness."""
    if word_count not in MNEMONIC_STRENGTHS:
        raise ValueError(f"word_count must be one of {sorted(MNEMONIC_STRENGTHS)}")
    return Mnemonic(MNEMONIC_LANGUAGE).generate(strength=MNEMONIC_STRENGTHS[word_count])


# ============================================
# Extended keys
# ============================================

class ExtendedKey:
    """
    A BIP-32 node: a key plus its chain code.

    Private nodes derive any child; public ("neutered") nodes derive only
    non-hardened children, and those match the private route exactly.
    """

    def __init__(
        self,
        chain_code: bytes,
        private_key: Optional[BytesLike] = None,
        public_key: Optional[bytes] = None,
        depth: int = 0,
        child_number: int = 0,
    ):
        if len(chain_code) != 32:
            raise InvalidKeyMaterial("Chain code must be 32 bytes")
        if private_key is None and public_key is None:
            raise InvalidKeyMaterial("Extended key needs a private or public key")

        self._chain_code = bytearray(chain_code)
        self._private_key = None
        if private_key is not None:
            validate_private_key(private_key)
            self._private_key = bytearray(private_key)
            public_key = PrivateKey(bytes(private_key)).public_key.format(compressed=True)
        self._public_key = public_key
        self.depth = depth
        self.child_number = child_number

    @classmethod
    def from_seed(cls, seed: BytesLike) -> "ExtendedKey":
        """Master node of a seed."""
        if not MIN_SEED_SIZE <= len(seed) <= MAX_SEED_SIZE:
            raise InvalidKeyMaterial(
                f"Seed must be {MIN_SEED_SIZE}-{MAX_SEED_SIZE} bytes, got {len(seed)}"
            )
        digest = _hmac_sha512(BIP32_SEED_KEY, bytes(seed))
        try:
            return cls(chain_code=digest[32:], private_key=digest[:32])
        except InvalidKeyMaterial as e:
            # probability ~2^-127, but BIP-32 says the seed is then unusable
            raise InvalidKeyMaterial("Seed produces an invalid master key") from e

    @property
    def is_private(self) -> bool:
        return self._private_key is not None

    @property
    def private_key(self) -> bytes:
        if self._private_key is None:
            raise InvalidKeyMaterial("Public-only node has no private key")
        return bytes(self._private_key)

    @property
    def public_key(self) -> bytes:
        """33-byte compressed public key."""
        return self._public_key

    @property
    def chain_code(self) -> bytes:
        return bytes(self._chain_code)

    @property
    def address(self) -> str:
        uncompressed = PublicKey(self._public_key).format(compressed=False)
        return public_key_to_address(uncompressed)

    @property
    def identifier(self) -> bytes:
        """keccak-256 of the public key; stable id for the node."""
        return keccak256(self._public_key)

    def neuter(self) -> "ExtendedKey":
        """Public-only copy of this node."""
        return ExtendedKey(
            chain_code=bytes(self._chain_code),
            public_key=self._public_key,
            depth=self.depth,
            child_number=self.child_number,
        )

    def child(self, step: PathStep) -> "ExtendedKey":
        """
        Derive one level down (CKDpriv for private nodes, CKDpub otherwise).

        Raises: DerivationPathError
        """
        if self.depth >= 255:
            raise DerivationPathError("Maximum derivation depth reached")

        if self._private_key is not None:
            try:
                private_key, chain_code = derive_child_key(
                    bytes(self._private_key), bytes(self._chain_code), step.to_node()
                )
            except ValidationError as e:
                raise DerivationPathError(f"Step {step} has no valid child key") from e
            return ExtendedKey(
                chain_code=chain_code,
                private_key=private_key,
                depth=self.depth + 1,
                child_number=step.child_number,
            )

        if step.hardened:
            raise DerivationPathError(f"Hardened step {step} needs the parent private key")

        digest = _hmac_sha512(
            bytes(self._chain_code), self._public_key + step.child_number.to_bytes(4, "big")
        )
        tweak, chain_code = digest[:32], digest[32:]
        point = None
        if int.from_bytes(tweak, "big") < SECP256K1_N:
            try:
                point = PublicKey(self._public_key).add(tweak)
            except ValueError:
                pass
        if point is None:
            # invalid child: move on to the next index, as derive_child_key does
            return self.child(PathStep(step.index + 1))
        return ExtendedKey(
            chain_code=chain_code,
            public_key=point.format(compressed=True),
            depth=self.depth + 1,
            child_number=step.child_number,
        )

    def derive(self, path: Union[DerivationPath, str]) -> "ExtendedKey":
        """Derive a relative path ("m" denotes this node)."""
        node = self
        for step in DerivationPath.coerce(path):
            node = node.child(step)
        return node

    def wipe(self) -> None:
        if self._private_key is not None:
            zeroize(self._private_key)
        zeroize(self._chain_code)

    def __repr__(self) -> str:
        kind = "private" if self.is_private else "public"
        return f"ExtendedKey({kind}, depth={self.depth}, address={self.address})"


# ============================================
# HD Key Wallet
# ============================================

@register_wallet_kind
class HDKey(MultiKeyPair):
    """
    Hierarchical deterministic wallet backed by a seed (and its mnemonic).

    Usage:
        # Create new wallet
        hdkey = HDKey.generate()
        phrase = hdkey.mnemonic  # Store securely offline

        # Restore
        hdkey = HDKey.generate(phrase)

        # Derive and sign
        keypair = hdkey.account_at(0)              # m/44'/60'/0'/0/0
        keypair = hdkey.account_at("m/44'/60'/1'/0/3")
        signature = hdkey.sign(0, b"Hello")
    """

    KIND = 1
    KIND_NAME = "hd"

    def __init__(
        self,
        seed: BytesLike,
        mnemonic: Optional[str] = None,
        base_path: Union[DerivationPath, str] = ETH_BASE_PATH,
    ):
        """Initialize from seed bytes (use generate() or from_seed())."""
        self._wiped = False
        self._seed = bytearray(seed)
        self._mnemonic = bytearray(mnemonic.encode("utf-8")) if mnemonic else None
        self._base_path = DerivationPath.coerce(base_path)
        self._nodes: dict[DerivationPath, ExtendedKey] = {}
        self._accounts: dict[DerivationPath, Account] = {}

        self._nodes[MASTER_PATH] = ExtendedKey.from_seed(self._seed)

    @classmethod
    def generate(
        cls,
        mnemonic: Optional[str] = None,
        passphrase: str = "",
        word_count: int = DEFAULT_WORD_COUNT,
        base_path: Union[DerivationPath, str] = ETH_BASE_PATH,
    ) -> "HDKey":
        """
        Create a wallet from a mnemonic, or from a fresh one when None.

        Args:
            mnemonic: Existing BIP-39 phrase (validated)
            passphrase: Optional BIP-39 passphrase ("25th word")
            word_count: Length of a generated phrase (12-24)
            base_path: Path that integer indices are appended to

        Raises: InvalidMnemonic
        """
        if mnemonic is None:
            phrase = generate_mnemonic(word_count)
            logger.debug(f"Generated new {word_count}-word mnemonic")
        else:
            phrase = validate_mnemonic(mnemonic)

        seed = Mnemonic.to_seed(phrase, passphrase=passphrase)
        return cls(seed, mnemonic=phrase, base_path=base_path)

    @classmethod
    def from_mnemonic(cls, mnemonic: str, passphrase: str = "",
                      base_path: Union[DerivationPath, str] = ETH_BASE_PATH) -> "HDKey":
        """Restore a wallet from an existing phrase. Raises: InvalidMnemonic"""
        return cls.generate(mnemonic, passphrase=passphrase, base_path=base_path)

    @classmethod
    def from_seed(cls, seed: BytesLike,
                  base_path: Union[DerivationPath, str] = ETH_BASE_PATH) -> "HDKey":
        """Wallet from raw seed bytes (no mnemonic to export)."""
        return cls(seed, base_path=base_path)

    # ============================================
    # Properties
    # ============================================

    @property
    def seed(self) -> bytes:
        """The seed (sensitive - explicit export only!)."""
        self._check_alive()
        return bytes(self._seed)

    @property
    def mnemonic(self) -> Optional[str]:
        """The seed phrase, or None for raw-seed wallets (sensitive!)."""
        self._check_alive()
        if self._mnemonic is None:
            return None
        return self._mnemonic.decode("utf-8")

    @property
    def base_path(self) -> DerivationPath:
        return self._base_path

    @property
    def fingerprint(self) -> bytes:
        self._check_alive()
        return self._nodes[MASTER_PATH].identifier

    @property
    def accounts(self) -> list:
        """Public accounts derived so far, in derivation order."""
        return list(self._accounts.values())

    # ============================================
    # Derivation
    # ============================================

    def resolve_path(self, path: PathLike) -> DerivationPath:
        """Map an index onto the base path; parse strings."""
        if isinstance(path, bool):
            raise DerivationPathError("Path index can't be a bool")
        if isinstance(path, int):
            return self._base_path.child(path)
        return DerivationPath.coerce(path)

    def node_at(self, path: PathLike) -> ExtendedKey:
        """Extended private node at a path (memoized along the way)."""
        self._check_alive()
        target = self.resolve_path(path)

        node = self._nodes[MASTER_PATH]
        steps = target.steps
        for depth in range(1, len(steps) + 1):
            prefix = DerivationPath(steps[:depth])
            cached = self._nodes.get(prefix)
            if cached is None:
                cached = node.child(steps[depth - 1])
                self._nodes[prefix] = cached
            node = cached
        return node

    def public_node_at(self, path: PathLike) -> ExtendedKey:
        """Public-only node, for deriving non-hardened children without secrets."""
        return self.node_at(path).neuter()

    def account_at(self, path: PathLike) -> Keypair:
        """
        Get the keypair at a path or base-path index.

        The keypair is a new copy owned by the caller; wiping it (or leaving
        a `with` block) leaves the wallet untouched.

        Raises: DerivationPathError
        """
        self._check_alive()
        target = self.resolve_path(path)

        keypair = Keypair(self.node_at(target).private_key, target)
        if target not in self._accounts:
            logger.debug(f"Derived account at {target}")
            self._accounts[target] = keypair.account
        return keypair

    # ============================================
    # Serialization
    # ============================================

    def serialize(self) -> bytes:
        self._check_alive()
        flags = _FLAG_HAS_MNEMONIC if self._mnemonic is not None else 0
        out = bytearray([flags])
        out += encode_len_prefixed(self._seed)
        if self._mnemonic is not None:
            out += encode_len_prefixed(self._mnemonic)
        out += encode_len_prefixed(str(self._base_path).encode("ascii"))
        # derived account paths, so the same accounts come back after a restore
        out += encode_uvarint(len(self._accounts))
        for path in self._accounts:
            out += encode_len_prefixed(str(path).encode("ascii"))
        return bytes(out)

    @classmethod
    def deserialize(cls, payload: bytes) -> "HDKey":
        reader = ByteReader(payload)
        flags = reader.u8()
        if flags & ~_FLAG_HAS_MNEMONIC:
            raise SerializationError(f"Unknown HD key flags: {flags:#04x}")

        seed = reader.len_prefixed()
        phrase = None
        if flags & _FLAG_HAS_MNEMONIC:
            try:
                phrase = validate_mnemonic(reader.len_prefixed().decode("utf-8"))
            except (UnicodeDecodeError, InvalidMnemonic) as e:
                raise SerializationError("Corrupted mnemonic in HD key payload") from e
        try:
            base_path = DerivationPath.parse(reader.len_prefixed().decode("ascii"))
            account_paths = [
                DerivationPath.parse(reader.len_prefixed().decode("ascii"))
                for _ in range(reader.uvarint())
            ]
        except (UnicodeDecodeError, DerivationPathError) as e:
            raise SerializationError("Corrupted derivation path in HD key payload") from e
        if not reader.eof():
            raise SerializationError(f"{reader.remaining} trailing bytes in HD key payload")

        try:
            hdkey = cls(seed, mnemonic=phrase, base_path=base_path)
        except InvalidKeyMaterial as e:
            raise SerializationError(f"Invalid seed in HD key payload: {e}") from e
        try:
            for path in account_paths:
                hdkey.account_at(path)
        except DerivationPathError as e:
            hdkey.wipe()
            raise SerializationError(f"Underivable account path in HD key payload: {e}") from e
        return hdkey

    # ============================================
    # Security: Memory Cleanup
    # ============================================

    @property
    def is_wiped(self) -> bool:
        return self._wiped

    def _check_alive(self) -> None:
        if self._wiped:
            raise InvalidKeyMaterial("Wallet has been wiped")

    def wipe(self) -> None:
        """
        Clear the seed, phrase and every derived key from memory.

        After wiping, the wallet can't derive or sign.
        """
        for node in self._nodes.values():
            node.wipe()
        self._accounts.clear()
        self._nodes.clear()
        zeroize(self._seed)
        if self._mnemonic is not None:
            zeroize(self._mnemonic)
        self._wiped = True

    def __eq__(self, other) -> bool:
        if not isinstance(other, HDKey):
            return NotImplemented
        return self._seed == other._seed and self._base_path == other._base_path

    __hash__ = None

    def __repr__(self) -> str:
        state = "wiped" if self._wiped else f"{len(self._accounts)} accounts"
        return f"HDKey(base_path={self._base_path}, {state})"


def hdkey_factory(mnemonic: Optional[str] = None) -> HDKey:
    """Keychain factory: restore from a phrase, or generate when None."""
    return HDKey.generate(mnemonic)
