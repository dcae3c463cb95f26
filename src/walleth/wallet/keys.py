"""
Keys - secp256k1 keypairs and their public account view.

A Keypair owns its private scalar in a mutable buffer so it can be wiped.
"""

import logging
from dataclasses import dataclass, field
from typing import Union

from coincurve import PrivateKey, PublicKey
from eth_account import Account as EthAccount

from ..errors import InvalidKeyMaterial
from ..utils import BytesLike, public_key_to_address, zeroize
from .path import DerivationPath, MASTER_PATH

logger = logging.getLogger(__name__)


# ============================================
# Curve Constants
# ============================================

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
PRIVATE_KEY_SIZE = 32


def validate_private_key(secret: BytesLike) -> None:
    """
    Check a 32-byte scalar is in [1, n-1].

    Raises: InvalidKeyMaterial
    """
    if len(secret) != PRIVATE_KEY_SIZE:
        raise InvalidKeyMaterial(
            f"Private key must be {PRIVATE_KEY_SIZE} bytes, got {len(secret)}"
        )
    scalar = int.from_bytes(secret, "big")
    if not 0 < scalar < SECP256K1_N:
        raise InvalidKeyMaterial("Private key scalar is zero or not below the curve order")


def load_public_key(public_key: BytesLike) -> PublicKey:
    """
    Parse a compressed (33), uncompressed (65) or raw (64) public key.

    Raises: InvalidKeyMaterial
    """
    data = bytes(public_key)
    if len(data) == 64:
        data = b"\x04" + data
    try:
        return PublicKey(data)
    except (ValueError, TypeError) as e:
        raise InvalidKeyMaterial(f"Invalid public key: {e}") from e


def compress_public_key(public_key: BytesLike) -> bytes:
    return load_public_key(public_key).format(compressed=True)


def address_from_public_key(public_key: BytesLike) -> str:
    """Checksummed address for any public key encoding."""
    return public_key_to_address(load_public_key(public_key).format(compressed=False))


# ============================================
# Data Classes
# ============================================

@dataclass(frozen=True)
class Account:
    """Public view of a derived keypair."""
    address: str            # 0x... checksummed address
    public_key: bytes       # 33-byte compressed public key
    path: DerivationPath = field(default=MASTER_PATH)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "public_key": self.public_key.hex(),
            "path": str(self.path),
        }


class Keypair:
    """
    A private scalar, its public point and the derived address.

    The scalar lives in a bytearray which wipe() overwrites. Use as a
    context manager to guarantee the wipe on every exit path:

        with hdkey.account_at(0) as keypair:
            signature = sign(keypair, b"Hello")
    """

    def __init__(self, private_key: BytesLike, path: Union[DerivationPath, str] = MASTER_PATH):
        validate_private_key(private_key)
        self._secret = bytearray(private_key)
        self._path = DerivationPath.coerce(path)

        public = PrivateKey(bytes(self._secret)).public_key
        self._public_key = public.format(compressed=True)
        self._address = public_key_to_address(public.format(compressed=False))

    @property
    def private_key(self) -> bytes:
        """
        The raw 32-byte scalar.

        WARNING: Handle with extreme care! The returned copy can't be wiped.
        """
        if self.is_wiped:
            raise InvalidKeyMaterial("Keypair has been wiped")
        return bytes(self._secret)

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def uncompressed_public_key(self) -> bytes:
        """64-byte public key without the 0x04 prefix."""
        return load_public_key(self._public_key).format(compressed=False)[1:]

    @property
    def address(self) -> str:
        return self._address

    @property
    def path(self) -> DerivationPath:
        return self._path

    @property
    def account(self) -> Account:
        return Account(address=self._address, public_key=self._public_key, path=self._path)

    def to_local_account(self):
        """Get an eth_account LocalAccount for transaction signing."""
        return EthAccount.from_key(self.private_key)

    # ============================================
    # Security: Memory Cleanup
    # ============================================

    @property
    def is_wiped(self) -> bool:
        return not any(self._secret)

    def wipe(self) -> None:
        """Overwrite the private scalar with zeros."""
        zeroize(self._secret)

    def __enter__(self) -> "Keypair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        if hasattr(self, "_secret"):
            self.wipe()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Keypair):
            return NotImplemented
        return (
            self._public_key == other._public_key
            and self._path == other._path
            and self._secret == other._secret
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"Keypair(address={self._address}, path={self._path})"
