"""
Secret vault for user API keys.
"""

import base64
import binascii
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .errors import DecryptionFailed, VaultConfigurationError

logger = logging.getLogger(__name__)


class SecretVault:
    """Symmetric encryption of credentials with a process-wide key."""

    def __init__(self, secret: Optional[str]):
        if not secret:
            raise VaultConfigurationError(
                "ENCRYPTION_KEY is not set; refusing to start without a vault key"
            )
        self._fernet = Fernet(self._derive_key(secret))

    @staticmethod
    def _derive_key(secret: str) -> bytes:
        # Accept a real Fernet key as-is.
        try:
            if len(base64.urlsafe_b64decode(secret.encode("utf-8"))) == 32:
                return secret.encode("utf-8")
        except (binascii.Error, ValueError):
            pass
        # Otherwise derive a stable 32-byte key from the secret.
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest)

    def encrypt(self, plaintext: str) -> str:
        token = self._fernet.encrypt(plaintext.encode("utf-8"))
        return token.decode("utf-8")

    def decrypt(self, token: str) -> str:
        """
        Decrypt a stored token.

        Raises:
            DecryptionFailed: If the token is malformed, tampered with or
                was encrypted under a different key.
        """
        try:
            raw = self._fernet.decrypt(token.encode("utf-8"))
            return raw.decode("utf-8")
        except (InvalidToken, UnicodeError, AttributeError) as e:
            raise DecryptionFailed("Stored credential could not be decrypted") from e
