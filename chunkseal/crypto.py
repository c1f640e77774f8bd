"""
Chunk encryption — XChaCha20-Poly1305 over opaque buffers.

- 32-byte key, 24-byte nonce, 16-byte Poly1305 tag appended to the ciphertext
- Encrypt-then-hash: encrypted chunks are what gets hashed into a tree, so
  peers can verify ciphertext without holding the key

The `pycryptodomex` package is lazily imported — missing dependency produces
a clear error message.

Install with: pip install chunkseal[crypto]
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from chunkseal import XCHACHA_KEY_SIZE, XCHACHA_NONCE_SIZE, XCHACHA_TAG_SIZE


class DecryptionError(ValueError):
    """Authentication failed: wrong key/nonce or tampered ciphertext."""


def _import_chacha():
    """Lazily import the ChaCha20-Poly1305 cipher from pycryptodomex.

    Raises ImportError with a helpful message if not installed.
    """
    try:
        from Cryptodome.Cipher import ChaCha20_Poly1305

        return ChaCha20_Poly1305
    except ImportError:
        raise ImportError(
            "pycryptodomex is required for chunk encryption. "
            "Install with: pip install chunkseal[crypto]"
        )


def _check_sizes(key: bytes, nonce: bytes) -> None:
    if len(key) != XCHACHA_KEY_SIZE:
        raise ValueError(f"Key must be {XCHACHA_KEY_SIZE} bytes")
    if len(nonce) != XCHACHA_NONCE_SIZE:
        raise ValueError(f"Nonce must be {XCHACHA_NONCE_SIZE} bytes")


def encrypt_xchacha20poly1305(key: bytes, nonce: bytes, plaintext: bytes) -> bytes:
    """Encrypt and authenticate a buffer.

    Returns:
        ciphertext + 16-byte tag.
    """
    ChaCha20_Poly1305 = _import_chacha()
    _check_sizes(key, nonce)

    cipher = ChaCha20_Poly1305.new(key=key, nonce=nonce)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext)
    return ciphertext + tag


def decrypt_xchacha20poly1305(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    """Authenticate and decrypt ciphertext + tag.

    Raises:
        DecryptionError: If authentication fails.
    """
    ChaCha20_Poly1305 = _import_chacha()
    _check_sizes(key, nonce)
    if len(ciphertext) < XCHACHA_TAG_SIZE:
        raise DecryptionError("Ciphertext shorter than the authentication tag")

    cipher = ChaCha20_Poly1305.new(key=key, nonce=nonce)
    body, tag = ciphertext[:-XCHACHA_TAG_SIZE], ciphertext[-XCHACHA_TAG_SIZE:]
    try:
        return cipher.decrypt_and_verify(body, tag)
    except ValueError:
        raise DecryptionError("Decryption failed — wrong key or tampered ciphertext") from None


@dataclass(frozen=True)
class EncryptedPayload:
    """Container for an XChaCha20-Poly1305 encrypted payload.

    Attributes:
        ciphertext: The encrypted data including the Poly1305 tag.
        nonce: The 24-byte nonce used for encryption.
    """

    ciphertext: bytes
    nonce: bytes

    def to_bytes(self) -> bytes:
        """Serialize to bytes: nonce(24) + ciphertext."""
        return self.nonce + self.ciphertext

    @classmethod
    def from_bytes(cls, data: bytes) -> EncryptedPayload:
        """Deserialize from bytes."""
        if len(data) < XCHACHA_NONCE_SIZE + XCHACHA_TAG_SIZE:
            raise ValueError("Encrypted payload too short")
        return cls(ciphertext=data[XCHACHA_NONCE_SIZE:], nonce=data[:XCHACHA_NONCE_SIZE])


def encrypt_with_key(plaintext: bytes, key: bytes) -> EncryptedPayload:
    """Encrypt with a raw key and a fresh random nonce."""
    nonce = os.urandom(XCHACHA_NONCE_SIZE)
    ciphertext = encrypt_xchacha20poly1305(key, nonce, plaintext)
    return EncryptedPayload(ciphertext=ciphertext, nonce=nonce)


def decrypt_with_key(payload: EncryptedPayload, key: bytes) -> bytes:
    """Decrypt a payload produced by encrypt_with_key().

    Raises:
        DecryptionError: If decryption fails.
    """
    return decrypt_xchacha20poly1305(key, payload.nonce, payload.ciphertext)
