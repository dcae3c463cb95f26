"""
Shared utility functions for walleth.

Hashing, hex encoding, varint codec and secret-buffer helpers used by every
other module.
"""

import re
from typing import Union

from eth_utils import keccak, to_checksum_address

from .errors import SerializationError


BytesLike = Union[bytes, bytearray, memoryview]

_HEX_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Varints longer than this can't describe anything we'd ever read
MAX_UVARINT_BYTES = 10


# ============================================
# Hashing
# ============================================

def keccak256(data: BytesLike) -> bytes:
    """Keccak-256 digest (the Ethereum flavour, not NIST SHA3-256)."""
    return keccak(bytes(data))


def public_key_to_address(uncompressed: bytes) -> str:
    """
    Compute the checksummed address of a 64-byte (or 0x04-prefixed 65-byte)
    uncompressed public key.
    """
    if len(uncompressed) == 65 and uncompressed[0] == 0x04:
        uncompressed = uncompressed[1:]
    if len(uncompressed) != 64:
        raise ValueError(f"Expected 64-byte public key, got {len(uncompressed)} bytes")
    return to_checksum_address(keccak256(uncompressed)[-20:])


# ============================================
# Hex
# ============================================

def strip0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def encode_hex(data: BytesLike) -> str:
    """Encode bytes as a 0x-prefixed lowercase hex string."""
    return "0x" + bytes(data).hex()


def decode_hex(value: str) -> bytes:
    """
    Decode a hex string, with or without 0x prefix.

    Raises: ValueError on odd length or non-hex characters.
    """
    try:
        return bytes.fromhex(strip0x(value.strip()))
    except ValueError as e:
        raise ValueError(f"Invalid hex string: {value!r}") from e


def is_hex_address(value: str) -> bool:
    """Check for a 0x-prefixed 20-byte hex address (checksum not enforced)."""
    return isinstance(value, str) and bool(_HEX_ADDRESS_RE.match(value))


def same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


# ============================================
# Varint codec
# ============================================

def encode_uvarint(value: int) -> bytes:
    """Encode a non-negative integer as an unsigned LEB128 varint."""
    if value < 0:
        raise ValueError("uvarint can't encode negative values")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def encode_len_prefixed(data: BytesLike) -> bytes:
    return encode_uvarint(len(data)) + bytes(data)


class ByteReader:
    """
    Bounds-checked reader over a byte buffer.

    Every read past the end raises SerializationError instead of returning
    short data.
    """

    def __init__(self, buf: BytesLike):
        self._buf = bytes(buf)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._buf) - self._pos

    def eof(self) -> bool:
        return self._pos >= len(self._buf)

    def read(self, n: int) -> bytes:
        if n < 0 or self._pos + n > len(self._buf):
            raise SerializationError(
                f"Unexpected end of data: wanted {n} bytes at offset {self._pos}, "
                f"{self.remaining} left"
            )
        chunk = self._buf[self._pos:self._pos + n]
        self._pos += n
        return chunk

    def u8(self) -> int:
        return self.read(1)[0]

    def uvarint(self) -> int:
        result = 0
        for shift in range(0, 7 * MAX_UVARINT_BYTES, 7):
            byte = self.u8()
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
        raise SerializationError("uvarint is too long")

    def len_prefixed(self) -> bytes:
        return self.read(self.uvarint())


# ============================================
# Secret buffers
# ============================================

def zeroize(buf: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    for i in range(len(buf)):
        buf[i] = 0
