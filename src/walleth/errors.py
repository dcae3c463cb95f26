"""
Errors - Exception hierarchy for walleth.

Every failure raised by the library derives from WallethError, so callers can
tell "wrong signature / wrong password" apart from programming faults.
Input-validation errors also subclass ValueError (and lookups KeyError) to stay
compatible with code written against the builtin exceptions.
"""


class WallethError(Exception):
    """Base class for all walleth errors."""


class InvalidMnemonic(WallethError, ValueError):
    """Mnemonic phrase failed word count, wordlist or checksum validation."""


class DerivationPathError(WallethError, ValueError):
    """Derivation path is malformed, out of range or not derivable."""


class InvalidKeyMaterial(WallethError, ValueError):
    """Private key, seed or public key bytes are unusable."""


class InvalidSignature(WallethError, ValueError):
    """Signature bytes are malformed or no public key can be recovered."""


class WalletNotFound(WallethError, KeyError):
    """No wallet is registered under the given handle."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class DuplicateSeed(WallethError):
    """Wallet with the same key material is already in the keychain."""


class KeychainLocked(WallethError):
    """Operation needs the keychain's wallets, but it is locked."""


class SerializationError(WallethError, ValueError):
    """Keychain bytes are truncated, of an unknown version or kind."""


class UnsupportedEnvelopeVersion(WallethError):
    """Vault envelope uses a format version this library can't read."""


class AuthenticationFailure(WallethError):
    """Vault envelope failed authentication (wrong password or tampered)."""
