"""
DataGuard - Field Classification, Obligation and Protection Engine

Classifies record fields by privacy sensitivity, applies the obligations
of the privacy laws that govern a processing context and encrypts the
fields that require it.

Laws Covered:
- GDPR: consent recording, data minimization, erasure preparation
- CCPA: opt-out of sale
- LGPD, PIPEDA: jurisdiction resolution

Usage:
    from dataguard import (
        DataGuard,
        DataGuardConfig,
        ProcessingContext,
        configure_logging_from_config,
    )

    config = DataGuardConfig()
    configure_logging_from_config(config)
    guard = DataGuard(config)
    result = guard.process(
        {"email": "jane@example.com", "password": "correct-horse-battery"},
        ProcessingContext(country="US", action="registration"),
    )
    result.data        # new record, sensitive fields encrypted
    result.compliance  # laws, actions, data rights, classifications
"""

__version__ = "1.0.0"

from dataguard.core import (
    ComplianceMetadata,
    ComplianceProcessingError,
    ComplianceWarning,
    ConsentNotFoundError,
    ConsentType,
    DataGuard,
    DataGuardConfig,
    DataGuardError,
    DataRight,
    DecryptionError,
    DeletionPlan,
    EncryptionError,
    Environment,
    FieldClassification,
    FieldClassifier,
    FieldType,
    InvalidInputError,
    KeyConfigurationError,
    LawCode,
    ObligationResolver,
    ProcessingContext,
    ProcessingResult,
    Sensitivity,
    WarningLevel,
)
from dataguard.core.logging import configure_logging, configure_logging_from_config, get_logger
from dataguard.encryption import FieldEncryptor, generate_secure_key
from dataguard.privacy import ConsentLedger

__all__ = [
    "__version__",
    # Engine
    "DataGuard",
    "DataGuardConfig",
    "FieldClassifier",
    "ObligationResolver",
    "FieldEncryptor",
    "ConsentLedger",
    "generate_secure_key",
    # Enums
    "ConsentType",
    "DataRight",
    "Environment",
    "FieldType",
    "LawCode",
    "Sensitivity",
    "WarningLevel",
    # Models
    "ComplianceMetadata",
    "ComplianceWarning",
    "DeletionPlan",
    "FieldClassification",
    "ProcessingContext",
    "ProcessingResult",
    # Exceptions
    "DataGuardError",
    "InvalidInputError",
    "EncryptionError",
    "DecryptionError",
    "KeyConfigurationError",
    "ConsentNotFoundError",
    "ComplianceProcessingError",
    # Logging
    "configure_logging",
    "configure_logging_from_config",
    "get_logger",
]
