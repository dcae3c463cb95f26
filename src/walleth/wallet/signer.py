"""
Signer - recoverable secp256k1 signatures.

Messages are digested with keccak-256, signed with an RFC 6979 deterministic
nonce and normalized to low-s form. The 65-byte wire form is r || s || v with
v in {0, 1}. Callers add any domain prefix (e.g. EIP-191) before signing.
"""

import logging
from dataclasses import dataclass
from typing import ClassVar, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from ..errors import InvalidKeyMaterial, InvalidSignature
from ..utils import BytesLike, decode_hex, encode_hex, is_hex_address, keccak256, same_address
from .keys import Account, Keypair, SECP256K1_N, compress_public_key, validate_private_key

logger = logging.getLogger(__name__)

SECP256K1_HALF_N = SECP256K1_N // 2


@dataclass(frozen=True)
class Signature:
    """ECDSA signature with its recovery indicator."""
    r: int
    s: int
    v: int

    SIZE: ClassVar[int] = 65

    def __post_init__(self):
        if not 0 < self.r < SECP256K1_N or not 0 < self.s < SECP256K1_N:
            raise InvalidSignature("Signature r/s outside [1, n-1]")
        if self.v not in (0, 1):
            raise InvalidSignature(f"Recovery indicator must be 0 or 1, got {self.v}")

    @property
    def is_canonical(self) -> bool:
        """True for the low-s form."""
        return self.s <= SECP256K1_HALF_N

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "Signature":
        """Parse r || s || v. Raises InvalidSignature."""
        data = bytes(data)
        if len(data) != cls.SIZE:
            raise InvalidSignature(f"Signature must be {cls.SIZE} bytes, got {len(data)}")
        return cls(
            r=int.from_bytes(data[:32], "big"),
            s=int.from_bytes(data[32:64], "big"),
            v=data[64],
        )

    def to_hex(self) -> str:
        return encode_hex(self.to_bytes())

    @classmethod
    def from_hex(cls, value: str) -> "Signature":
        try:
            return cls.from_bytes(decode_hex(value))
        except ValueError as e:
            if isinstance(e, InvalidSignature):
                raise
            raise InvalidSignature(str(e)) from e

    @classmethod
    def coerce(cls, value: Union["Signature", BytesLike, str]) -> "Signature":
        if isinstance(value, Signature):
            return value
        if isinstance(value, str):
            return cls.from_hex(value)
        return cls.from_bytes(value)

    def __bytes__(self) -> bytes:
        return self.to_bytes()


def digest(message: BytesLike) -> bytes:
    """The 32-byte hash that actually gets signed."""
    return keccak256(message)


# ============================================
# Signing
# ============================================

def sign(keypair: Keypair, message: BytesLike) -> Signature:
    """
    Sign a message with a keypair.

    Raises: InvalidKeyMaterial if the keypair is wiped or its scalar invalid.
    """
    secret = keypair.private_key
    validate_private_key(secret)

    try:
        signed = keys.PrivateKey(secret).sign_msg_hash(digest(message))
    except ValidationError as e:
        raise InvalidKeyMaterial(f"Unable to sign: {e}") from e

    r, s, v = signed.r, signed.s, signed.v
    if s > SECP256K1_HALF_N:
        # flipping s mirrors R, so the recovery parity flips with it
        s = SECP256K1_N - s
        v ^= 1
    return Signature(r=r, s=s, v=v)


def _recover(message: BytesLike, signature) -> keys.PublicKey:
    sig = Signature.coerce(signature)
    try:
        eth_sig = keys.Signature(vrs=(sig.v, sig.r, sig.s))
        return eth_sig.recover_public_key_from_msg_hash(digest(message))
    except (BadSignature, ValidationError, ValueError) as e:
        raise InvalidSignature(f"Unable to recover public key: {e}") from e


def recover(message: BytesLike, signature: Union[Signature, BytesLike, str]) -> bytes:
    """
    Recover the signer's compressed public key.

    Raises: InvalidSignature if no public key can be recovered.
    """
    return _recover(message, signature).to_compressed_bytes()


def recover_address(message: BytesLike, signature: Union[Signature, BytesLike, str]) -> str:
    """Recover the signer's checksummed address."""
    return _recover(message, signature).to_checksum_address()


def _expected_signer(target):
    """Normalize a verification target to ('key', bytes) or ('address', str)."""
    if isinstance(target, (Keypair, Account)):
        return "key", target.public_key
    if isinstance(target, str):
        if not is_hex_address(target):
            raise InvalidKeyMaterial(f"Not an address: {target!r}")
        return "address", target
    if isinstance(target, (bytes, bytearray, memoryview)):
        return "key", compress_public_key(target)
    raise TypeError(f"Can't verify against {type(target).__name__}")


def verify(
    target: Union[Keypair, Account, BytesLike, str],
    message: BytesLike,
    signature: Union[Signature, BytesLike, str],
) -> bool:
    """
    Check a signature against a keypair, account, public key or address.

    Returns False for any bad signature (wrong message, wrong key, high-s,
    wrong recovery indicator, malformed bytes); never raises for one.
    Raises: InvalidKeyMaterial / TypeError for an unusable target.
    """
    kind, expected = _expected_signer(target)

    try:
        sig = Signature.coerce(signature)
    except InvalidSignature:
        return False
    if not sig.is_canonical:
        return False

    msg_hash = digest(message)
    try:
        eth_sig = keys.Signature(vrs=(sig.v, sig.r, sig.s))
        recovered = eth_sig.recover_public_key_from_msg_hash(msg_hash)
    except (BadSignature, ValidationError, ValueError):
        return False

    if kind == "address":
        return same_address(recovered.to_checksum_address(), expected)
    if recovered.to_compressed_bytes() != expected:
        return False
    return recovered.verify_msg_hash(msg_hash, eth_sig)
