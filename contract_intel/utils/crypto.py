"""
Field encryption for secrets stored in the auth database.

TOTP shared secrets must be readable by the server (it computes codes from
them), so they cannot be hashed like reset tokens. When a key is configured
they are encrypted with Fernet (AES-128-CBC + HMAC-SHA256) before storage.

Threat model: protect against database theft, not a compromised server.
"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from ..auth.errors import SecretDecryptionError

logger = logging.getLogger(__name__)


class SecretCipher:
    """
    Encrypts and decrypts short secret strings.

    Example usage:
        cipher = SecretCipher(key)
        stored = cipher.encrypt("JBSWY3DPEHPK3PXP")
        secret = cipher.decrypt(stored)
    """

    def __init__(self, key: str):
        """
        Args:
            key: URL-safe base64-encoded 32-byte Fernet key.

        Raises:
            ValueError: If the key is missing or malformed.
        """
        if not key:
            raise ValueError(
                "MFA_SECRET_ENCRYPTION_KEY not set. "
                "Generate with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
            )
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet key."""
        return Fernet.generate_key().decode('utf-8')

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        if plaintext is None:
            return None
        return self._fernet.encrypt(plaintext.encode('utf-8')).decode('utf-8')

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        """
        Decrypt a stored value.

        Raises:
            SecretDecryptionError: If the value was not produced with this key.
        """
        if ciphertext is None:
            return None
        try:
            return self._fernet.decrypt(ciphertext.encode('utf-8')).decode('utf-8')
        except InvalidToken as e:
            logger.error("Decryption of stored secret failed (wrong key or corrupted value)")
            raise SecretDecryptionError("Stored secret could not be decrypted") from e
