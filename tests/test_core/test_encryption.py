"""Tests for integration config encryption."""

import pytest
from hypothesis import given, strategies as st

from changewatch.core.encryption import (
    ConfigEncryption,
    DecryptionError,
    EncryptionKeyError,
    mask_credential_value,
)

from conftest import TEST_ENCRYPTION_KEY


class TestConfigEncryption:
    """Tests for ConfigEncryption class."""

    def test_encrypt_decrypt_roundtrip(self, encryption: ConfigEncryption):
        """Test that encryption/decryption is reversible."""
        original = {
            "clientId": "client-abc",
            "clientSecret": "secret-xyz",
            "expiresAt": "1760000000000",
        }
        encrypted = encryption.encrypt(original)

        assert encryption.decrypt(encrypted) == original

    def test_encrypted_data_hides_secrets(self, encryption: ConfigEncryption):
        encrypted = encryption.encrypt({"clientSecret": "secret-xyz"})

        assert "secret-xyz" not in encrypted

    def test_decrypt_invalid_data_raises_error(self, encryption: ConfigEncryption):
        with pytest.raises(DecryptionError):
            encryption.decrypt("invalid-encrypted-data")

    def test_decrypt_with_other_key_raises_error(self, encryption: ConfigEncryption):
        other = ConfigEncryption(ConfigEncryption.generate_key())
        encrypted = other.encrypt({"accessToken": "t"})

        with pytest.raises(DecryptionError):
            encryption.decrypt(encrypted)

    def test_invalid_key_raises_error(self):
        with pytest.raises(EncryptionKeyError):
            ConfigEncryption("invalid-key")

    def test_generate_key_format(self):
        key = ConfigEncryption.generate_key()

        assert isinstance(key, str)
        assert len(key) == 44  # Fernet key length
        assert ConfigEncryption(key) is not None

    @given(st.dictionaries(st.text(min_size=1), st.text()))
    def test_encrypt_arbitrary_configs(self, config):
        """Property test: any string mapping should encrypt/decrypt correctly."""
        encryption = ConfigEncryption(TEST_ENCRYPTION_KEY)
        assert encryption.decrypt(encryption.encrypt(config)) == config


class TestMaskCredentialValue:
    """Tests for mask_credential_value."""

    def test_masks_long_values(self):
        assert mask_credential_value("client-abcdef") == "clie********"

    def test_masks_short_values_entirely(self):
        assert mask_credential_value("abc") == "***"

    def test_custom_visible_chars(self):
        assert mask_credential_value("abcdefgh", visible_chars=2) == "ab******"
