"""
DataGuard - Encryption Module

Authenticated field-level encryption for sensitive record values:
- AES-256-GCM
- PBKDF2-HMAC-SHA256 per-value key derivation
"""

from dataguard.encryption.service import (
    EncryptedField,
    FieldEncryptor,
    generate_secure_key,
    resolve_master_key,
)

__all__ = [
    "EncryptedField",
    "FieldEncryptor",
    "generate_secure_key",
    "resolve_master_key",
]
