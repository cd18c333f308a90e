"""Integration config encryption using Fernet symmetric encryption.

Integration configs hold client secrets and OAuth tokens, so they are
encrypted before storage and decrypted only when a service needs a value.

SECURITY NOTES:
- Uses Fernet (AES-128-CBC with HMAC-SHA256)
- Encryption key must be 32 url-safe base64-encoded bytes
- Never log decrypted config values
"""

import json
from typing import Any

import structlog
from cryptography.fernet import Fernet, InvalidToken

logger = structlog.get_logger()


class EncryptionError(Exception):
    """Base exception for encryption operations."""

    pass


class EncryptionKeyError(EncryptionError):
    """Invalid or missing encryption key."""

    pass


class DecryptionError(EncryptionError):
    """Failed to decrypt data."""

    pass


class ConfigEncryption:
    """Fernet-based encryption of integration config mappings.

    Stateless apart from the key, so one instance can be shared across requests.

    Example usage:
        encryption = ConfigEncryption(key)
        encrypted = encryption.encrypt({"clientSecret": "..."})
        config = encryption.decrypt(encrypted)
    """

    def __init__(self, key: str) -> None:
        """Initialize with a Fernet key.

        Args:
            key: Fernet key (32 url-safe base64-encoded bytes)

        Raises:
            EncryptionKeyError: If key is invalid
        """
        try:
            self._fernet = Fernet(key.encode())
        except Exception as e:
            logger.error("encryption_key_invalid", error=str(e))
            raise EncryptionKeyError(
                "Invalid encryption key format. "
                "Generate with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
            ) from e

    def encrypt(self, data: dict[str, Any]) -> str:
        """Encrypt a config mapping.

        Args:
            data: Config mapping to encrypt

        Returns:
            Fernet-encrypted string (url-safe base64)

        Raises:
            EncryptionError: If encryption fails
        """
        try:
            json_bytes = json.dumps(data, separators=(",", ":")).encode("utf-8")
            return self._fernet.encrypt(json_bytes).decode("utf-8")
        except (TypeError, ValueError) as e:
            logger.error("encryption_failed", error_type=type(e).__name__)
            raise EncryptionError("Failed to encrypt integration config") from e

    def decrypt(self, encrypted_data: str) -> dict[str, Any]:
        """Decrypt a config mapping.

        Args:
            encrypted_data: Fernet-encrypted string

        Returns:
            Decrypted config mapping

        Raises:
            DecryptionError: If decryption fails (wrong key, corrupted data, etc.)
        """
        try:
            decrypted_bytes = self._fernet.decrypt(encrypted_data.encode("utf-8"))
            return json.loads(decrypted_bytes.decode("utf-8"))
        except InvalidToken as e:
            logger.warning("decryption_invalid_token")
            raise DecryptionError(
                "Failed to decrypt: invalid token (wrong key or corrupted data)"
            ) from e
        except json.JSONDecodeError as e:
            logger.error("decryption_invalid_json")
            raise DecryptionError("Decrypted data is not valid JSON") from e

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet encryption key."""
        return Fernet.generate_key().decode("utf-8")


def mask_credential_value(value: str, visible_chars: int = 4) -> str:
    """Mask a secret value for safe logging.

    Shows only the first few characters followed by asterisks.

    Args:
        value: Secret value to mask
        visible_chars: Number of visible characters

    Returns:
        Masked string like "figu********"
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * min(8, len(value) - visible_chars)
