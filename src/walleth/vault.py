"""
Vault - Password-based authenticated encryption of byte buffers.

Industry-standard security:
- Argon2id key derivation (memory-hard)
- AES-256-GCM (envelope v1) or ChaCha20-Poly1305 (envelope v2)
- Fresh random salt and nonce for every encryption
- Envelope header authenticated as associated data

Envelope layout (integers big-endian):

    [version:u8][time_cost:u32][memory_cost:u32][parallelism:u8]
    [salt_len:u8][salt][nonce:12][ciphertext][tag:16]
"""

import logging
import secrets
import struct
from dataclasses import dataclass
from typing import Union

from argon2.exceptions import HashingError
from argon2.low_level import hash_secret_raw, Type
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .errors import AuthenticationFailure, SerializationError, UnsupportedEnvelopeVersion
from .utils import BytesLike, ByteReader, zeroize

logger = logging.getLogger(__name__)


# ============================================
# Security Constants
# ============================================

# Argon2id parameters (OWASP recommendations for high-security)
ARGON2_TIME_COST = 3
ARGON2_MEMORY_COST = 65536  # 64 MB
ARGON2_PARALLELISM = 4
ARGON2_HASH_LEN = 32  # 256 bits for AES-256 / ChaCha20

# Upper bounds for parameters read back from an envelope header, so a
# corrupted header can't demand an absurd amount of work
MAX_TIME_COST = 16
MAX_MEMORY_COST = 256 * 1024  # 256 MB, four times the default
MAX_PARALLELISM = 16

SALT_SIZE = 16
MIN_SALT_SIZE = 8
MAX_SALT_SIZE = 255  # length is a u8 in the header
NONCE_SIZE = 12  # 96 bits (recommended for GCM)
TAG_SIZE = 16

# Envelope format versions
ENVELOPE_V1 = 1  # Argon2id + AES-256-GCM
ENVELOPE_V2 = 2  # Argon2id + ChaCha20-Poly1305
DEFAULT_ENVELOPE_VERSION = ENVELOPE_V1

_CIPHERS = {
    ENVELOPE_V1: AESGCM,
    ENVELOPE_V2: ChaCha20Poly1305,
}

SUPPORTED_VERSIONS = tuple(sorted(_CIPHERS))

_KDF_STRUCT = struct.Struct(">IIB")


# ============================================
# Data Classes
# ============================================

@dataclass(frozen=True)
class KdfParams:
    """Argon2id cost parameters (memory_cost in KiB)."""
    time_cost: int = ARGON2_TIME_COST
    memory_cost: int = ARGON2_MEMORY_COST
    parallelism: int = ARGON2_PARALLELISM

    def validate(self) -> None:
        """Raises ValueError for parameters Argon2 (or our bounds) reject."""
        if not 1 <= self.time_cost <= MAX_TIME_COST:
            raise ValueError(f"time_cost must be in [1, {MAX_TIME_COST}]")
        if not 1 <= self.parallelism <= MAX_PARALLELISM:
            raise ValueError(f"parallelism must be in [1, {MAX_PARALLELISM}]")
        if not 8 * self.parallelism <= self.memory_cost <= MAX_MEMORY_COST:
            raise ValueError(
                f"memory_cost must be in [{8 * self.parallelism}, {MAX_MEMORY_COST}] KiB"
            )

    def to_bytes(self) -> bytes:
        return _KDF_STRUCT.pack(self.time_cost, self.memory_cost, self.parallelism)

    @classmethod
    def from_bytes(cls, data: bytes) -> "KdfParams":
        return cls(*_KDF_STRUCT.unpack(data))


DEFAULT_KDF_PARAMS = KdfParams()


@dataclass(frozen=True)
class Envelope:
    """An encrypted payload plus everything needed to decrypt it."""
    version: int
    kdf: KdfParams
    salt: bytes
    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def header(self) -> bytes:
        """Bytes preceding the ciphertext; authenticated as associated data."""
        return (
            bytes([self.version])
            + self.kdf.to_bytes()
            + bytes([len(self.salt)])
            + self.salt
            + self.nonce
        )

    def to_bytes(self) -> bytes:
        return self.header() + self.ciphertext + self.tag

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "Envelope":
        """
        Parse envelope bytes.

        Raises:
            UnsupportedEnvelopeVersion: unknown version byte
            AuthenticationFailure: truncated or malformed envelope
        """
        data = bytes(data)
        if not data:
            raise AuthenticationFailure("Envelope is empty")

        version = data[0]
        if version not in _CIPHERS:
            raise UnsupportedEnvelopeVersion(
                f"Unsupported envelope version: {version} (supported: {SUPPORTED_VERSIONS})"
            )

        reader = ByteReader(data)
        try:
            reader.u8()
            kdf = KdfParams.from_bytes(reader.read(_KDF_STRUCT.size))
            salt = reader.read(reader.u8())
            nonce = reader.read(NONCE_SIZE)
            body = reader.read(reader.remaining)
        except SerializationError as e:
            raise AuthenticationFailure("Envelope is truncated") from e

        if len(body) < TAG_SIZE:
            raise AuthenticationFailure("Envelope is truncated")

        envelope = cls(
            version=version,
            kdf=kdf,
            salt=salt,
            nonce=nonce,
            ciphertext=body[:-TAG_SIZE],
            tag=body[-TAG_SIZE:],
        )
        envelope.validate()
        return envelope

    def validate(self) -> None:
        """
        Check the fields before any key derivation happens.

        Raises:
            UnsupportedEnvelopeVersion: unknown version
            AuthenticationFailure: malformed field or out-of-range KDF cost
        """
        if self.version not in _CIPHERS:
            raise UnsupportedEnvelopeVersion(
                f"Unsupported envelope version: {self.version} (supported: {SUPPORTED_VERSIONS})"
            )
        if not MIN_SALT_SIZE <= len(self.salt) <= MAX_SALT_SIZE:
            raise AuthenticationFailure("Envelope salt has a bad length")
        if len(self.nonce) != NONCE_SIZE:
            raise AuthenticationFailure("Envelope nonce has a bad length")
        if len(self.tag) != TAG_SIZE:
            raise AuthenticationFailure("Envelope tag has a bad length")
        if not isinstance(self.kdf, KdfParams):
            raise AuthenticationFailure("Envelope has no KDF parameters")
        try:
            self.kdf.validate()
        except ValueError as e:
            raise AuthenticationFailure(f"Envelope KDF parameters rejected: {e}") from e

    def __bytes__(self) -> bytes:
        return self.to_bytes()


# ============================================
# Key Derivation
# ============================================

def _password_bytes(password: Union[str, BytesLike]) -> bytes:
    if isinstance(password, str):
        return password.encode("utf-8")
    return bytes(password)


def derive_key(password: Union[str, BytesLike], salt: bytes,
               params: KdfParams = DEFAULT_KDF_PARAMS) -> bytearray:
    """
    Derive an encryption key from password using Argon2id.

    Argon2id is memory-hard, making brute-force attacks expensive.
    With the default parameters, each password guess requires ~64MB RAM.
    The key is returned in a bytearray so callers can wipe it.
    """
    return bytearray(hash_secret_raw(
        secret=_password_bytes(password),
        salt=salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
        hash_len=ARGON2_HASH_LEN,
        type=Type.ID
    ))


# ============================================
# Vault
# ============================================

class Vault:
    """
    Stateless encrypt/decrypt of byte buffers under a password.

    Usage:
        vault = Vault()
        envelope = vault.encrypt(b"secret", "my-password")
        blob = envelope.to_bytes()               # store anywhere
        plaintext = vault.decrypt(blob, "my-password")
    """

    def __init__(self, kdf_params: KdfParams = DEFAULT_KDF_PARAMS,
                 version: int = DEFAULT_ENVELOPE_VERSION):
        if version not in _CIPHERS:
            raise UnsupportedEnvelopeVersion(f"Unsupported envelope version: {version}")
        kdf_params.validate()
        self.kdf_params = kdf_params
        self.version = version

    def encrypt(self, plaintext: BytesLike, password: Union[str, BytesLike]) -> Envelope:
        """
        Encrypt bytes with a password.

        Every call uses a fresh salt and nonce, so equal inputs never produce
        equal envelopes.
        """
        salt = secrets.token_bytes(SALT_SIZE)
        nonce = secrets.token_bytes(NONCE_SIZE)
        unsealed = Envelope(
            version=self.version,
            kdf=self.kdf_params,
            salt=salt,
            nonce=nonce,
            ciphertext=b"",
            tag=b"",
        )

        key = derive_key(password, salt, self.kdf_params)
        try:
            cipher = _CIPHERS[self.version](bytes(key))
            sealed = cipher.encrypt(nonce, bytes(plaintext), unsealed.header())
        finally:
            zeroize(key)

        logger.debug(f"Encrypted {len(plaintext)} bytes (envelope v{self.version})")
        return Envelope(
            version=self.version,
            kdf=self.kdf_params,
            salt=salt,
            nonce=nonce,
            ciphertext=sealed[:-TAG_SIZE],
            tag=sealed[-TAG_SIZE:],
        )

    def decrypt(self, envelope: Union[Envelope, BytesLike],
                password: Union[str, BytesLike]) -> bytes:
        """
        Decrypt an envelope with a password.

        The KDF and cipher come from the envelope's own version and header,
        not from this vault's settings, so older envelopes stay readable.

        Raises:
            AuthenticationFailure: wrong password or tampered/truncated data
            UnsupportedEnvelopeVersion: unknown envelope version
        """
        if isinstance(envelope, Envelope):
            envelope.validate()
        else:
            envelope = Envelope.from_bytes(envelope)

        key = None
        try:
            key = derive_key(password, envelope.salt, envelope.kdf)
            cipher = _CIPHERS[envelope.version](bytes(key))
            plaintext = cipher.decrypt(
                envelope.nonce,
                envelope.ciphertext + envelope.tag,
                envelope.header(),
            )
        except HashingError as e:
            logger.warning("Envelope key derivation failed")
            raise AuthenticationFailure(f"Envelope KDF parameters rejected: {e}") from e
        except InvalidTag as e:
            logger.warning("Envelope authentication failed")
            raise AuthenticationFailure("Wrong password or corrupted data") from e
        finally:
            if key is not None:
                zeroize(key)

        return plaintext


_default_vault = Vault()


def encrypt(plaintext: BytesLike, password: Union[str, BytesLike]) -> Envelope:
    """Encrypt with the default vault settings."""
    return _default_vault.encrypt(plaintext, password)


def decrypt(envelope: Union[Envelope, BytesLike], password: Union[str, BytesLike]) -> bytes:
    """Decrypt any supported envelope."""
    return _default_vault.decrypt(envelope, password)
