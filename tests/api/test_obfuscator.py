import base64

import pytest

from subground.api.error_handler import DecryptionError
from subground.api.obfuscator import (
    decrypt,
    derive_key_bytes,
    encrypt,
    rolling_hash,
    transform,
)


@pytest.mark.unit
def test_rolling_hash_known_values():
    assert rolling_hash("") == 0
    assert rolling_hash("a") == 97
    assert rolling_hash("k1") == 107 * 31 + ord("1")


@pytest.mark.unit
def test_rolling_hash_wraps_to_signed_32_bits():
    # Fifth step overflows 2**31 and wraps negative
    assert rolling_hash("\uffff" * 5) == -1884131265


@pytest.mark.unit
def test_rolling_hash_walks_utf16_code_units():
    # U+1F600 is the surrogate pair D83D DE00
    assert rolling_hash("\U0001F600") == 0xD83D * 31 + 0xDE00


@pytest.mark.unit
def test_derive_key_bytes_layout():
    key = derive_key_bytes("k1")
    assert len(key) == 16
    assert key == bytes(14) + bytes([0x0D, 0x26])

    # Absolute value of a negative hash
    assert derive_key_bytes("\uffff" * 5) == bytes(12) + bytes.fromhex("704d8fc1")


@pytest.mark.unit
def test_derive_key_bytes_is_deterministic():
    secret = "subculture-ground-encryption-key-2024"
    first = derive_key_bytes(secret)
    assert all(derive_key_bytes(secret) == first for _ in range(5))
    assert derive_key_bytes("k2") != derive_key_bytes("k1")


@pytest.mark.unit
def test_empty_secret_gives_identity_key():
    assert derive_key_bytes("") == bytes(16)
    assert transform(b"plain", derive_key_bytes("")) == b"plain"


@pytest.mark.unit
def test_transform_is_an_involution():
    key = derive_key_bytes("k1")
    data = bytes(range(256)) * 2
    once = transform(data, key)
    assert once != data
    assert transform(once, key) == data


@pytest.mark.unit
def test_transform_rejects_empty_key():
    with pytest.raises(ValueError):
        transform(b"abc", b"")


@pytest.mark.unit
def test_short_plaintext_is_not_hidden():
    # The first 12 key bytes are always zero
    assert encrypt('{"a":1}', "k1") == base64.b64encode(b'{"a":1}').decode("ascii")


@pytest.mark.unit
def test_encrypt_decrypt_round_trip_unicode():
    text = '{"name":"홍길동","note":"café ☕"}'
    ciphertext = encrypt(text, "k1")
    assert decrypt(ciphertext, "k1") == text


@pytest.mark.unit
def test_decrypt_ignores_ascii_whitespace():
    ciphertext = encrypt("hello world, hello world", "k1")
    wrapped = ciphertext[:10] + "\n" + ciphertext[10:] + "  "
    assert decrypt(wrapped, "k1") == "hello world, hello world"


@pytest.mark.unit
def test_decrypt_accepts_missing_padding():
    ciphertext = encrypt("hello", "k1")
    assert ciphertext.endswith("=")
    assert decrypt(ciphertext.rstrip("="), "k1") == "hello"


@pytest.mark.unit
@pytest.mark.parametrize("bad", ["not base64!!", "abcde", "ab=c", "é"])
def test_decrypt_rejects_invalid_base64(bad):
    with pytest.raises(DecryptionError) as exc_info:
        decrypt(bad, "k1")
    assert exc_info.value.reason == "invalid base64"


@pytest.mark.unit
def test_decrypt_rejects_invalid_utf8():
    ciphertext = base64.b64encode(transform(b"\xff\xfe\xfd", derive_key_bytes("k1"))).decode("ascii")
    with pytest.raises(DecryptionError) as exc_info:
        decrypt(ciphertext, "k1")
    assert exc_info.value.reason == "invalid UTF-8"
    assert exc_info.value.__cause__ is None


@pytest.mark.unit
def test_decrypt_error_excerpt_is_bounded_and_hides_secret():
    bad = "!" * 300
    with pytest.raises(DecryptionError) as exc_info:
        decrypt(bad, "my-secret-key")
    error = exc_info.value
    assert error.excerpt == "!" * 100
    assert "!" * 101 not in str(error)
    assert "my-secret-key" not in str(error)
