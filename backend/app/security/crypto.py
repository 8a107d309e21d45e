# backend/app/security/crypto.py
"""
AES-256-GCM encryption for OTP secrets at rest.

The key is passed in when the cipher is built; the account store receives
a ready cipher and never reads key material from the environment.
"""
import base64
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
_KEY_SIZE = 32


class SecretCipher:
    """Encrypts short strings into base64(nonce + ciphertext) tokens."""

    def __init__(self, key: bytes):
        if len(key) != _KEY_SIZE:
            raise ValueError("Encryption key must be 32 bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_base64(cls, raw: str) -> "SecretCipher":
        if not raw:
            raise RuntimeError("OTP_SECRET_ENCRYPTION_KEY not set")
        return cls(base64.b64decode(raw))

    def encrypt(self, plaintext: str, associated_data: Optional[bytes] = None) -> str:
        nonce = os.urandom(_NONCE_SIZE)
        ct = self._aead.encrypt(nonce, plaintext.encode(), associated_data)
        return base64.b64encode(nonce + ct).decode()

    def decrypt(self, token: str, associated_data: Optional[bytes] = None) -> str:
        """
        Decrypt a token produced by encrypt().

        Raises:
            ValueError: if the token was tampered with, was encrypted under
                another key, or belongs to different associated data
        """
        raw = base64.b64decode(token)
        nonce, ct = raw[:_NONCE_SIZE], raw[_NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, ct, associated_data).decode()
        except InvalidTag as exc:
            raise ValueError("Encrypted secret failed authentication") from exc


def generate_key() -> str:
    """New random base64 key suitable for OTP_SECRET_ENCRYPTION_KEY."""
    return base64.b64encode(AESGCM.generate_key(bit_length=256)).decode()
