"""Symmetric encryption for integration credentials at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken


class CredentialDecryptError(ValueError):
    """Raised when stored ciphertext cannot be decrypted with the current key."""


class CredentialCipher:
    """Fernet cipher keyed by a SHA-256 digest of the configured secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("secret is required")
        key = base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as e:
            raise CredentialDecryptError("credentials cannot be decrypted") from e
