"""
Envelope codec for encrypted request and response bodies.

Every encrypted payload travels as ``{"encrypted": "<base64>"}``. Values are
serialized the way ``JSON.stringify`` does (compact separators, non-ASCII
kept verbatim) so both ends produce identical ciphertext.
"""

import json
from typing import Any, Dict

from subground.api.error_handler import DecryptionError, EncryptionError
from subground.api.obfuscator import decrypt, encrypt, excerpt

ENVELOPE_FIELD = "encrypted"

Envelope = Dict[str, str]


def encrypt_object(value: Any, secret: str) -> Envelope:
    """
    Serialize and encrypt a value into an envelope.

    Args:
        value: JSON-serializable value
        secret: Secret string

    Returns:
        Envelope dict

    Raises:
        EncryptionError: If the value cannot be serialized
    """
    try:
        text = json.dumps(
            value,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise EncryptionError(f"Encryption failed: value is not JSON-serializable ({e})") from None

    return {ENVELOPE_FIELD: encrypt(text, secret)}


def decrypt_object(envelope_text: str, secret: str) -> Any:
    """
    Decrypt envelope ciphertext and parse the JSON inside.

    Args:
        envelope_text: Base64 ciphertext (the ``encrypted`` field)
        secret: Secret string

    Returns:
        Parsed value

    Raises:
        DecryptionError: On bad base64, bad UTF-8, empty payload or bad JSON
    """
    text = decrypt(envelope_text, secret)
    if not text.strip():
        raise DecryptionError("empty payload", excerpt(envelope_text))

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Decoder messages can quote the plaintext, keep them out
        raise DecryptionError("invalid JSON", excerpt(envelope_text)) from None


def is_envelope(body: Any) -> bool:
    """Check that a body has exactly the envelope shape."""
    return (
        isinstance(body, dict)
        and set(body) == {ENVELOPE_FIELD}
        and isinstance(body[ENVELOPE_FIELD], str)
    )


def open_envelope(body: Any, secret: str) -> Any:
    """
    Validate an envelope and decrypt its payload.

    Args:
        body: Parsed response body
        secret: Secret string

    Returns:
        Decrypted value

    Raises:
        DecryptionError: If the body is not an envelope or cannot be decrypted
    """
    if not is_envelope(body):
        shape = sorted(body) if isinstance(body, dict) else type(body).__name__
        raise DecryptionError(f"invalid envelope shape: {shape}")
    return decrypt_object(body[ENVELOPE_FIELD], secret)


class EnvelopeCodec:
    """Envelope helpers bound to one secret."""

    def __init__(self, secret: str):
        self._secret = secret

    def __repr__(self) -> str:
        return "EnvelopeCodec(secret=<hidden>)"

    def encrypt_request(self, value: Any) -> Envelope:
        """Wrap an outbound value into an envelope."""
        return encrypt_object(value, self._secret)

    def decrypt_response(self, body: Any) -> Any:
        """Unwrap a parsed response envelope."""
        return open_envelope(body, self._secret)
