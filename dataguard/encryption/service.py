"""
DataGuard - Field Encryption Service

Authenticated field-level encryption for sensitive record values:
- AES-256-GCM with a fresh IV per value
- Per-value keys derived from the master secret with PBKDF2-HMAC-SHA256
  and a fresh salt
- Field name, format version and payload encoding bound as associated data
- Master key resolution with production fail-fast
"""

from __future__ import annotations

import base64
import binascii
import copy
import json
import secrets
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import SecretStr

from dataguard.core.enums import Environment
from dataguard.core.exceptions import (
    DecryptionError,
    EncryptionError,
    KeyConfigurationError,
)
from dataguard.core.models import FieldClassification, utcnow

logger = structlog.get_logger(__name__)

ENCRYPTED_MARKER = "_encrypted"
FORMAT_VERSION = "1.0"
ALGORITHM = "aes-256-gcm"

KEY_LENGTH = 32     # 256-bit derived key
IV_LENGTH = 12      # GCM nonce
SALT_LENGTH = 16
TAG_LENGTH = 16

ENCODING_UTF8 = "utf8"
ENCODING_JSON = "json"


# ═══════════════════════════════════════════════════════════════════════════
# KEY MANAGEMENT
# ═══════════════════════════════════════════════════════════════════════════


def generate_secure_key() -> str:
    """Generate a random 256-bit master key as 64 hex characters."""
    return secrets.token_hex(KEY_LENGTH)


def _key_material(secret: str | bytes | SecretStr) -> bytes:
    """Normalize a master secret to bytes; 64 hex chars decode to 32 bytes."""
    if isinstance(secret, SecretStr):
        secret = secret.get_secret_value()
    if isinstance(secret, bytes):
        return secret

    if len(secret) == KEY_LENGTH * 2:
        try:
            return bytes.fromhex(secret)
        except ValueError:
            pass  # Not hex; treat as raw text
    return secret.encode("utf-8")


def resolve_master_key(
    explicit: str | bytes | SecretStr | None,
    environment: Environment = Environment.DEVELOPMENT,
) -> bytes:
    """
    Resolve the master secret used for key derivation.

    Args:
        explicit: Key supplied by the caller or loaded from
            ``DATAGUARD_ENCRYPTION_KEY`` by the configuration
        environment: Deployment environment

    Returns:
        Key material of at least 32 bytes

    Raises:
        KeyConfigurationError: No key in production, or key too short
    """
    if explicit is not None:
        material = _key_material(explicit)
        if len(material) < KEY_LENGTH:
            raise KeyConfigurationError(
                f"Encryption key must be at least {KEY_LENGTH} bytes "
                f"(got {len(material)})"
            )
        return material

    if not environment.allows_ephemeral_keys:
        raise KeyConfigurationError(
            "DATAGUARD_ENCRYPTION_KEY must be set in production; "
            "refusing to generate an ephemeral key"
        )

    logger.warning(
        "ephemeral_encryption_key_generated",
        environment=environment.value,
        detail="Using temporary encryption key - NOT SECURE FOR PRODUCTION. "
               "Set DATAGUARD_ENCRYPTION_KEY to keep encrypted data readable.",
    )
    return secrets.token_bytes(KEY_LENGTH)


# ═══════════════════════════════════════════════════════════════════════════
# ENCRYPTED FIELD
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class EncryptedField:
    """Container stored in place of an encrypted field value."""
    ciphertext: bytes
    iv: bytes
    salt: bytes
    auth_tag: bytes
    field: str
    encoding: str = ENCODING_UTF8
    version: str = FORMAT_VERSION
    algorithm: str = ALGORITHM
    encrypted_at: datetime = field(default_factory=utcnow)

    def associated_data(self) -> bytes:
        """Metadata authenticated alongside the ciphertext."""
        return json.dumps(
            {"encoding": self.encoding, "field": self.field, "version": self.version},
            sort_keys=True,
            separators=(",", ":"),
        ).encode()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON form stored in a record."""
        return {
            ENCRYPTED_MARKER: True,
            "version": self.version,
            "algorithm": self.algorithm,
            "encoding": self.encoding,
            "ciphertext": base64.b64encode(self.ciphertext).decode(),
            "iv": base64.b64encode(self.iv).decode(),
            "salt": base64.b64encode(self.salt).decode(),
            "auth_tag": base64.b64encode(self.auth_tag).decode(),
            "field": self.field,
            "encrypted_at": self.encrypted_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EncryptedField":
        """Deserialize from the JSON form; malformed input raises DecryptionError."""
        try:
            return cls(
                ciphertext=base64.b64decode(data["ciphertext"], validate=True),
                iv=base64.b64decode(data["iv"], validate=True),
                salt=base64.b64decode(data["salt"], validate=True),
                auth_tag=base64.b64decode(data["auth_tag"], validate=True),
                field=data["field"],
                encoding=data.get("encoding", ENCODING_UTF8),
                version=data.get("version", FORMAT_VERSION),
                algorithm=data.get("algorithm", ALGORITHM),
                encrypted_at=datetime.fromisoformat(data["encrypted_at"]),
            )
        except (KeyError, TypeError, ValueError, binascii.Error) as e:
            raise DecryptionError(f"Malformed encrypted field: {e}") from e


# ═══════════════════════════════════════════════════════════════════════════
# FIELD ENCRYPTOR
# ═══════════════════════════════════════════════════════════════════════════


class FieldEncryptor:
    """
    Encrypts and decrypts individual record values.

    The master secret is the only state and is read-only after
    construction, so one encryptor may be shared across threads.
    """

    def __init__(
        self,
        master_key: str | bytes | SecretStr | None = None,
        environment: Environment = Environment.DEVELOPMENT,
        iterations: int = 100_000,
    ):
        if iterations < 100_000:
            raise KeyConfigurationError("Key derivation requires at least 100000 iterations")
        self._master_key = resolve_master_key(master_key, environment)
        self.iterations = iterations

    def _derive_key(self, salt: bytes) -> bytes:
        """Derive a per-value AES key from the master secret and salt."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=salt,
            iterations=self.iterations,
        )
        return kdf.derive(self._master_key)

    @staticmethod
    def _serialize(value: Any) -> tuple[bytes, str]:
        """Encode a value to plaintext bytes and its encoding tag."""
        if isinstance(value, str):
            return value.encode("utf-8"), ENCODING_UTF8
        try:
            canonical = json.dumps(
                value,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Value is not serializable: {e}") from e
        return canonical.encode("utf-8"), ENCODING_JSON

    @staticmethod
    def _deserialize(plaintext: bytes, encoding: str) -> Any:
        """Decode plaintext bytes back to the original value."""
        text = plaintext.decode("utf-8")
        if encoding != ENCODING_JSON:
            return text
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    # ───────────────────────────────────────────────────────────────
    # CORE ENCRYPTION
    # ───────────────────────────────────────────────────────────────

    def encrypt(self, value: Any, field_name: str = "unknown") -> Any:
        """
        Encrypt a field value using AES-256-GCM.

        Args:
            value: Value to encrypt; None is returned unchanged
            field_name: Field the value belongs to (bound as AAD)

        Returns:
            Encrypted field dict, or the original value if encryption failed
        """
        if value is None:
            return None

        try:
            plaintext, encoding = self._serialize(value)

            iv = secrets.token_bytes(IV_LENGTH)
            salt = secrets.token_bytes(SALT_LENGTH)
            envelope = EncryptedField(
                ciphertext=b"",
                iv=iv,
                salt=salt,
                auth_tag=b"",
                field=field_name,
                encoding=encoding,
            )

            aesgcm = AESGCM(self._derive_key(salt))
            sealed = aesgcm.encrypt(iv, plaintext, envelope.associated_data())
            envelope.ciphertext = sealed[:-TAG_LENGTH]
            envelope.auth_tag = sealed[-TAG_LENGTH:]

            return envelope.to_dict()
        except Exception as e:
            logger.error(
                "field_encryption_failed",
                field=field_name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return value

    def decrypt(self, value: Any) -> Any:
        """
        Decrypt an encrypted field value.

        Values that are not encrypted fields are returned as-is.

        Raises:
            DecryptionError: Authentication failed or the payload is malformed
        """
        if not self.is_encrypted(value):
            return value

        envelope = EncryptedField.from_dict(value)
        if envelope.algorithm != ALGORITHM:
            raise DecryptionError(f"Unsupported algorithm: {envelope.algorithm}")

        try:
            aesgcm = AESGCM(self._derive_key(envelope.salt))
            plaintext = aesgcm.decrypt(
                envelope.iv,
                envelope.ciphertext + envelope.auth_tag,
                envelope.associated_data(),
            )
            return self._deserialize(plaintext, envelope.encoding)
        except (InvalidTag, ValueError, UnicodeDecodeError) as e:
            logger.warning(
                "field_decryption_failed",
                field=envelope.field,
                error_type=type(e).__name__,
            )
            raise DecryptionError(f"Failed to decrypt field '{envelope.field}'") from e

    @staticmethod
    def is_encrypted(value: Any) -> bool:
        """Check if a value is an encrypted field."""
        return isinstance(value, Mapping) and value.get(ENCRYPTED_MARKER) is True

    # ───────────────────────────────────────────────────────────────
    # RECORD-LEVEL HELPERS
    # ───────────────────────────────────────────────────────────────

    def auto_encrypt_sensitive_fields(
        self,
        record: Mapping[str, Any],
        classifications: Iterable[FieldClassification],
    ) -> dict[str, Any]:
        """
        Encrypt every field whose classification requires it.

        Fields already encrypted or not flagged are left untouched, so a
        second pass over a protected record is a no-op.
        """
        result = dict(record)

        for classification in classifications:
            if not classification.encryption_required:
                continue
            name = classification.field
            current = result.get(name)
            if current is None or self.is_encrypted(current):
                continue
            result[name] = self.encrypt(current, name)

        return result

    def auto_decrypt_sensitive_fields(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """
        Decrypt every encrypted field of a record.

        Raises:
            DecryptionError: Any field fails to decrypt
        """
        result = copy.deepcopy(dict(record))
        for name, value in result.items():
            if self.is_encrypted(value):
                result[name] = self.decrypt(value)
        return result
