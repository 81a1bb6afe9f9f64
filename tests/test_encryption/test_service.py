"""
Tests for dataguard.encryption.service module.

Tests authenticated field encryption, tamper detection, master key
resolution and record-level helpers.
"""

from __future__ import annotations

import base64

import pytest
from pydantic import SecretStr
from structlog.testing import capture_logs

from dataguard.core.enums import Environment, FieldType, Sensitivity
from dataguard.core.exceptions import DecryptionError, KeyConfigurationError
from dataguard.core.models import FieldClassification
from dataguard.encryption.service import (
    ALGORITHM,
    ENCRYPTED_MARKER,
    EncryptedField,
    FieldEncryptor,
    generate_secure_key,
    resolve_master_key,
)


def _flip_first_byte(encoded: str) -> str:
    raw = bytearray(base64.b64decode(encoded))
    raw[0] ^= 0x01
    return base64.b64encode(bytes(raw)).decode()


def _classification(name: str, required: bool = True) -> FieldClassification:
    return FieldClassification(
        field=name,
        type=FieldType.DIRECT_IDENTIFIER,
        sensitivity=Sensitivity.HIGH,
        encryption_required=required,
    )


class TestKeyManagement:
    """Tests for master key generation and resolution."""

    def test_generate_secure_key(self):
        """Test keys are 64 hex characters and unique."""
        key = generate_secure_key()

        assert len(key) == 64
        int(key, 16)
        assert generate_secure_key() != key

    def test_hex_key_decoded(self):
        """Test a 64-char hex key becomes 32 raw bytes."""
        key = generate_secure_key()

        assert resolve_master_key(key) == bytes.fromhex(key)

    def test_text_key_encoded(self):
        """Test non-hex keys are used as UTF-8 text."""
        key = "a passphrase that is long enough for aes"

        assert resolve_master_key(key) == key.encode("utf-8")

    def test_secret_str_key(self):
        """Test SecretStr keys from configuration."""
        key = generate_secure_key()

        assert resolve_master_key(SecretStr(key)) == bytes.fromhex(key)

    def test_short_key_rejected(self):
        """Test keys shorter than 32 bytes are rejected."""
        with pytest.raises(KeyConfigurationError, match="at least 32 bytes"):
            resolve_master_key("too-short")

    def test_missing_key_in_production(self):
        """Test production refuses to generate a key."""
        with pytest.raises(KeyConfigurationError):
            resolve_master_key(None, Environment.PRODUCTION)

    def test_ephemeral_key_warns(self):
        """Test development falls back to a random key loudly."""
        with capture_logs() as logs:
            key = resolve_master_key(None, Environment.DEVELOPMENT)

        assert len(key) == 32
        warnings = [entry for entry in logs if entry["event"] == "ephemeral_encryption_key_generated"]
        assert len(warnings) == 1
        assert warnings[0]["log_level"] == "warning"

    def test_weak_iterations_rejected(self, encryption_key):
        """Test key derivation below the minimum is refused."""
        with pytest.raises(KeyConfigurationError):
            FieldEncryptor(master_key=encryption_key, iterations=1_000)


class TestEncryptDecrypt:
    """Tests for single-value encryption."""

    @pytest.mark.parametrize(
        "value",
        [
            "john@example.com",
            "",
            "ünïcødé ✓",
            34,
            3.5,
            True,
            ["hiking", "photography"],
            {"lat": 52.52, "lng": 13.405},
            "123",
        ],
    )
    def test_round_trip(self, encryptor, value):
        """Test decrypt(encrypt(v)) == v with the original type."""
        encrypted = encryptor.encrypt(value, "field")

        decrypted = encryptor.decrypt(encrypted)

        assert decrypted == value
        assert type(decrypted) is type(value)

    def test_encrypted_shape(self, encryptor):
        """Test the stored container."""
        encrypted = encryptor.encrypt("john@example.com", "email")

        assert encrypted[ENCRYPTED_MARKER] is True
        assert encrypted["algorithm"] == ALGORITHM
        assert encrypted["version"] == "1.0"
        assert encrypted["field"] == "email"
        assert encrypted["encoding"] == "utf8"
        assert len(base64.b64decode(encrypted["iv"])) == 12
        assert len(base64.b64decode(encrypted["salt"])) == 16
        assert len(base64.b64decode(encrypted["auth_tag"])) == 16
        assert "john@example.com" not in str(encrypted)

    def test_fresh_iv_and_salt(self, encryptor):
        """Test encrypting the same value twice differs."""
        first = encryptor.encrypt("same", "email")
        second = encryptor.encrypt("same", "email")

        assert first["iv"] != second["iv"]
        assert first["salt"] != second["salt"]
        assert first["ciphertext"] != second["ciphertext"]

    def test_none_passes_through(self, encryptor):
        """Test None is never encrypted."""
        assert encryptor.encrypt(None, "email") is None

    def test_plain_values_pass_through_decrypt(self, encryptor):
        """Test decrypting a non-encrypted value returns it."""
        assert encryptor.decrypt("plain") == "plain"
        assert encryptor.decrypt({"a": 1}) == {"a": 1}

    def test_unserializable_value_returned(self, encryptor):
        """Test encryption failures degrade to the original value."""
        value = {1, 2, 3}

        with capture_logs() as logs:
            result = encryptor.encrypt(value, "tags")

        assert result is value
        assert any(entry["event"] == "field_encryption_failed" for entry in logs)

    def test_is_encrypted(self, encryptor):
        """Test encrypted value detection."""
        assert encryptor.is_encrypted(encryptor.encrypt("x", "f"))
        assert not encryptor.is_encrypted({"_encrypted": "yes"})
        assert not encryptor.is_encrypted("x")


class TestTamperDetection:
    """Tests for authenticated decryption failures."""

    @pytest.mark.parametrize("part", ["ciphertext", "iv", "salt", "auth_tag"])
    def test_byte_tampering(self, encryptor, part):
        """Test flipping one byte of any binary part fails decryption."""
        encrypted = encryptor.encrypt("john@example.com", "email")
        encrypted[part] = _flip_first_byte(encrypted[part])

        with pytest.raises(DecryptionError):
            encryptor.decrypt(encrypted)

    @pytest.mark.parametrize(
        ("key", "value"),
        [("field", "phone"), ("version", "2.0"), ("encoding", "json")],
    )
    def test_bound_metadata_tampering(self, encryptor, key, value):
        """Test metadata bound as associated data cannot be changed."""
        encrypted = encryptor.encrypt("john@example.com", "email")
        encrypted[key] = value

        with pytest.raises(DecryptionError):
            encryptor.decrypt(encrypted)

    def test_wrong_key(self, encryptor):
        """Test another master key cannot decrypt."""
        encrypted = encryptor.encrypt("secret", "password")
        other = FieldEncryptor(master_key=generate_secure_key())

        with pytest.raises(DecryptionError):
            other.decrypt(encrypted)

    def test_malformed_payload(self, encryptor):
        """Test broken containers raise DecryptionError."""
        encrypted = encryptor.encrypt("secret", "password")
        encrypted["iv"] = "not base64!"

        with pytest.raises(DecryptionError):
            encryptor.decrypt(encrypted)

    def test_missing_parts(self, encryptor):
        """Test containers missing required keys."""
        with pytest.raises(DecryptionError):
            encryptor.decrypt({ENCRYPTED_MARKER: True, "field": "email"})

    def test_unsupported_algorithm(self, encryptor):
        """Test unknown algorithms are refused."""
        encrypted = encryptor.encrypt("secret", "password")
        encrypted["algorithm"] = "rot13"

        with pytest.raises(DecryptionError, match="Unsupported algorithm"):
            encryptor.decrypt(encrypted)


class TestEncryptedField:
    """Tests for the EncryptedField container."""

    def test_dict_round_trip(self, encryptor):
        """Test from_dict reverses to_dict."""
        stored = encryptor.encrypt("value", "email")

        envelope = EncryptedField.from_dict(stored)

        assert envelope.to_dict() == stored

    def test_associated_data_binds_metadata(self):
        """Test associated data covers field, version and encoding."""
        envelope = EncryptedField(ciphertext=b"", iv=b"", salt=b"", auth_tag=b"", field="email")

        assert envelope.associated_data() == b'{"encoding":"utf8","field":"email","version":"1.0"}'


class TestRecordHelpers:
    """Tests for record-level encryption."""

    def test_auto_encrypt(self, encryptor):
        """Test only flagged, present fields are encrypted."""
        record = {"email": "a@b.co", "nickname": "JD", "phone": None}
        classifications = [
            _classification("email"),
            _classification("nickname", required=False),
            _classification("phone"),
        ]

        result = encryptor.auto_encrypt_sensitive_fields(record, classifications)

        assert encryptor.is_encrypted(result["email"])
        assert result["nickname"] == "JD"
        assert result["phone"] is None
        assert record["email"] == "a@b.co"

    def test_auto_encrypt_idempotent(self, encryptor):
        """Test a second pass leaves encrypted values untouched."""
        classifications = [_classification("email")]
        once = encryptor.auto_encrypt_sensitive_fields({"email": "a@b.co"}, classifications)

        twice = encryptor.auto_encrypt_sensitive_fields(once, classifications)

        assert twice == once

    def test_auto_decrypt(self, encryptor):
        """Test every encrypted field is restored."""
        record = {
            "email": encryptor.encrypt("a@b.co", "email"),
            "gps": encryptor.encrypt({"lat": 1.5}, "gps"),
            "nickname": "JD",
        }

        result = encryptor.auto_decrypt_sensitive_fields(record)

        assert result == {"email": "a@b.co", "gps": {"lat": 1.5}, "nickname": "JD"}
        assert encryptor.is_encrypted(record["email"])

    def test_auto_decrypt_propagates_failure(self, encryptor):
        """Test decryption errors are not swallowed."""
        encrypted = encryptor.encrypt("a@b.co", "email")
        encrypted["auth_tag"] = _flip_first_byte(encrypted["auth_tag"])

        with pytest.raises(DecryptionError):
            encryptor.auto_decrypt_sensitive_fields({"email": encrypted})
