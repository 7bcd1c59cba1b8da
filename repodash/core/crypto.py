"""AES-256-GCM sealing for secrets that leave the server inside session tokens."""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from repodash.core.config import get_settings

NONCE_SIZE = 12
KEY_SIZE = 32


class EncryptionKeyError(RuntimeError):
    pass


def load_key(encoded: str) -> bytes:
    try:
        key = base64.b64decode(encoded, validate=True)
    except binascii.Error as e:
        raise EncryptionKeyError("ENCRYPTION_KEY_BASE64 is not valid base64") from e

    if len(key) != KEY_SIZE:
        raise EncryptionKeyError(
            f"ENCRYPTION_KEY_BASE64 decodes to {len(key)} bytes, AES-256 needs {KEY_SIZE}"
        )
    return key


def _cipher() -> AESGCM:
    return AESGCM(load_key(get_settings().ENCRYPTION_KEY_BASE64))


def seal_text(*, plaintext: str, aad: bytes) -> str:
    """Encrypt ``plaintext`` bound to ``aad``; returns unpadded URL-safe base64 of nonce + ciphertext."""
    nonce = os.urandom(NONCE_SIZE)
    blob = nonce + _cipher().encrypt(nonce, plaintext.encode("utf-8"), aad)
    return base64.urlsafe_b64encode(blob).decode("ascii").rstrip("=")


def unseal_text(*, sealed: str, aad: bytes) -> str:
    # Raises cryptography's InvalidTag when the value or its aad was tampered with.
    blob = base64.urlsafe_b64decode(sealed + "=" * (-len(sealed) % 4))
    if len(blob) <= NONCE_SIZE:
        raise ValueError("sealed value is too short")
    return _cipher().decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], aad).decode("utf-8")
