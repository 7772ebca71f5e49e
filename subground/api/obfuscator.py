"""
Payload obfuscation utilities.

SECURITY NOTE: This module provides a hash-keyed XOR stream over UTF-8 bytes.
It is NOT cryptographically secure: the derived key carries at most 32 bits
of entropy, 12 of its 16 bytes are always zero, and there is no integrity
check. It exists only to stay wire-compatible with the backend, which
applies the exact same transform.
"""

import base64
import binascii
from typing import Union

from subground.api.error_handler import DecryptionError, EncryptionError

KEY_HEX_LENGTH = 32

# Longest excerpt of an encrypted input carried in error messages
EXCERPT_LENGTH = 100

_ASCII_WHITESPACE = " \t\n\r\f"


def _to_int32(value: int) -> int:
    """Wrap an integer to signed 32-bit two's complement."""
    value &= 0xFFFFFFFF
    if value & 0x80000000:
        return value - 0x100000000
    return value


def _utf16_code_units(text: str):
    """Yield UTF-16 code units, surrogate pairs split like charCodeAt()."""
    encoded = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        yield encoded[i] | (encoded[i + 1] << 8)


def rolling_hash(secret: str) -> int:
    """
    Compute the 32-bit rolling hash of a secret.

    Args:
        secret: Secret string

    Returns:
        Signed 32-bit hash value
    """
    h = 0
    for code in _utf16_code_units(secret):
        h = _to_int32((h << 5) - h + code)
    return h


def derive_key_bytes(secret: str) -> bytes:
    """
    Derive the 16-byte keystream seed for a secret.

    The absolute hash is rendered as lowercase hex, left-padded with zeros to
    32 characters and decoded pairwise. Identical secrets always give
    identical bytes.

    Args:
        secret: Secret string

    Returns:
        16 key bytes
    """
    key_hex = format(abs(rolling_hash(secret)), "x").rjust(KEY_HEX_LENGTH, "0")
    return bytes.fromhex(key_hex)


def transform(data: Union[bytes, bytearray], key_bytes: bytes) -> bytes:
    """
    XOR data with a repeating key. Applying it twice restores the input.

    Args:
        data: Bytes to transform
        key_bytes: Key bytes (must not be empty)

    Returns:
        Transformed bytes
    """
    if not key_bytes:
        raise ValueError("key_bytes must not be empty")
    key_len = len(key_bytes)
    return bytes(b ^ key_bytes[i % key_len] for i, b in enumerate(data))


def excerpt(text: str) -> str:
    """Bounded prefix of an encrypted input for diagnostics."""
    return text[:EXCERPT_LENGTH]


def encrypt(plaintext: str, secret: str) -> str:
    """
    Encrypt a string into base64 ciphertext.

    Args:
        plaintext: Text to encrypt
        secret: Secret string

    Returns:
        Standard base64 ciphertext

    Raises:
        EncryptionError: If the text cannot be UTF-8 encoded
    """
    try:
        data = plaintext.encode("utf-8")
    except UnicodeEncodeError:
        raise EncryptionError("Encryption failed: text is not encodable as UTF-8") from None
    cipher_bytes = transform(data, derive_key_bytes(secret))
    return base64.b64encode(cipher_bytes).decode("ascii")


def decrypt(ciphertext: str, secret: str) -> str:
    """
    Decrypt base64 ciphertext back to a string.

    A wrong key or corrupted ciphertext is only detected if the result is
    not valid UTF-8.

    Args:
        ciphertext: Standard base64 ciphertext
        secret: Secret string

    Returns:
        Decrypted text

    Raises:
        DecryptionError: On invalid base64 or a non UTF-8 result
    """
    compact = "".join(ch for ch in ciphertext if ch not in _ASCII_WHITESPACE)
    # Padding is optional, as with atob()
    if "=" not in compact and len(compact) % 4 in (2, 3):
        compact += "=" * (4 - len(compact) % 4)
    try:
        cipher_bytes = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        raise DecryptionError("invalid base64", excerpt(ciphertext)) from None

    plain_bytes = transform(cipher_bytes, derive_key_bytes(secret))
    try:
        return plain_bytes.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionError("invalid UTF-8", excerpt(ciphertext)) from None
