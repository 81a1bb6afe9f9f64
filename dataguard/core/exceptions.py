"""
DataGuard - Exceptions

Error taxonomy for the protection engine. Missing consent is not an
error; it is queried through ``ConsentLedger.has_valid_consent``.
"""


class DataGuardError(Exception):
    """Base exception for DataGuard errors."""
    pass


class InvalidInputError(DataGuardError, ValueError):
    """Record is null or not a mapping."""
    pass


class EncryptionError(DataGuardError):
    """A field value could not be encrypted."""
    pass


class DecryptionError(DataGuardError):
    """An encrypted field could not be authenticated or decrypted."""
    pass


class KeyConfigurationError(DataGuardError):
    """Master encryption key is missing or unusable."""
    pass


class ConsentNotFoundError(DataGuardError):
    """Record carries no consent to act on."""
    pass


class ComplianceProcessingError(DataGuardError):
    """Sanitized error surfaced to callers in production."""
    pass
