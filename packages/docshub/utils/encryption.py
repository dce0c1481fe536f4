"""Fernet encryption for repository access tokens.

Tokens (GitHub bearer tokens, Azure DevOps PATs) are stored encrypted in
``repositories.pat_encrypted`` and are only decrypted while building a
fetcher for a sync run.

Usage:
    from packages.docshub.utils.encryption import SecretEncryption

    SecretEncryption.initialize(settings.CONNECTOR_SECRETS_KEY)
    stored = encrypt_secret("ghp_...")
    token = decrypt_secret(stored)
"""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from cryptography.fernet import Fernet

logger = logging.getLogger(__name__)


class SecretEncryptionError(Exception):
    """Base exception for encryption errors."""


class EncryptionNotConfiguredError(SecretEncryptionError):
    """Raised when encryption is used but not configured."""


class DecryptionError(SecretEncryptionError):
    """Raised when decryption fails."""


class SecretEncryption:
    """Process-wide Fernet cipher for repository credentials.

    Must be initialized with a Fernet key before use. The key id is a
    truncated SHA-256 of the key and is only used for logging.
    """

    _fernet: ClassVar[Fernet | None] = None
    _key_id: ClassVar[str | None] = None

    @classmethod
    def initialize(cls, key: str | None) -> bool:
        """Initialize with a Fernet key; an empty key disables encryption.

        Raises:
            ValueError: If the key is not a valid Fernet key
        """
        if not key or not key.strip():
            cls.reset()
            logger.warning("SecretEncryption initialized without key - repository tokens cannot be decrypted")
            return False

        from cryptography.fernet import Fernet

        key = key.strip()
        try:
            cls._fernet = Fernet(key.encode())
        except Exception as e:
            cls.reset()
            raise ValueError(f"Invalid Fernet key: {e}") from e

        cls._key_id = hashlib.sha256(key.encode()).hexdigest()[:16]
        logger.info(f"SecretEncryption initialized with key_id={cls._key_id}")
        return True

    @classmethod
    def is_configured(cls) -> bool:
        return cls._fernet is not None

    @classmethod
    def get_key_id(cls) -> str:
        return cls._key_id or "none"

    @classmethod
    def encrypt(cls, plaintext: str) -> bytes:
        if cls._fernet is None:
            raise EncryptionNotConfiguredError(
                "Encryption not configured - set CONNECTOR_SECRETS_KEY environment variable"
            )
        try:
            return cls._fernet.encrypt(plaintext.encode("utf-8"))
        except Exception as e:
            raise SecretEncryptionError(f"Encryption failed: {e}") from e

    @classmethod
    def decrypt(cls, ciphertext: bytes) -> str:
        """Decrypt a token.

        Raises:
            EncryptionNotConfiguredError: If no key has been configured
            DecryptionError: Wrong key or corrupted data
        """
        if cls._fernet is None:
            raise EncryptionNotConfiguredError(
                "Encryption not configured - set CONNECTOR_SECRETS_KEY environment variable"
            )

        from cryptography.fernet import InvalidToken

        try:
            return cls._fernet.decrypt(ciphertext).decode("utf-8")
        except InvalidToken as e:
            logger.error("Decryption failed - invalid token (key may have changed)")
            raise DecryptionError("Failed to decrypt secret - encryption key may have changed") from e

    @classmethod
    def reset(cls) -> None:
        """Clear the configured key (used by tests)."""
        cls._fernet = None
        cls._key_id = None


def encrypt_secret(plaintext: str) -> str:
    """Encrypt a token into a base64 string suitable for a text column."""
    return base64.b64encode(SecretEncryption.encrypt(plaintext)).decode("ascii")


def decrypt_secret(stored: str) -> str:
    """Decrypt a token produced by :func:`encrypt_secret`."""
    try:
        ciphertext = base64.b64decode(stored.encode("ascii"), validate=True)
    except (ValueError, UnicodeEncodeError) as e:
        raise DecryptionError("Stored secret is not valid base64") from e
    return SecretEncryption.decrypt(ciphertext)
