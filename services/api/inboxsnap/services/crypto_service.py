"""Encryption of stored Gmail tokens using libsodium (PyNaCl)."""

import base64
import logging

import nacl.secret
import nacl.utils

from inboxsnap.config import Settings

logger = logging.getLogger(__name__)


class CryptoService:
    """SecretBox (XSalsa20-Poly1305) wrapper for OAuth tokens at rest."""

    def __init__(self, settings: Settings) -> None:
        key_b64 = settings.encryption_key.get_secret_value()
        if key_b64:
            key = base64.b64decode(key_b64)
        elif settings.app_env == "production":
            raise ValueError("ENCRYPTION_KEY must be set in production")
        else:
            logger.warning("No encryption key configured; tokens encrypted with an ephemeral key")
            key = nacl.utils.random(nacl.secret.SecretBox.KEY_SIZE)
        self._box = nacl.secret.SecretBox(key)

    def encrypt(self, plaintext: str) -> bytes:
        """Nonce-prefixed ciphertext."""
        return self._box.encrypt(plaintext.encode("utf-8"))

    def decrypt(self, ciphertext: bytes) -> str:
        return self._box.decrypt(ciphertext).decode("utf-8")


_crypto_service: CryptoService | None = None


def get_crypto_service(settings: Settings) -> CryptoService:
    global _crypto_service
    if _crypto_service is None:
        _crypto_service = CryptoService(settings)
    return _crypto_service
