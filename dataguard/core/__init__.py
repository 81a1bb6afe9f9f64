"""
DataGuard Core Module

Configuration, enumerations, models, classification, obligation rules
and the protection engine.
"""

from dataguard.core.config import DataGuardConfig
from dataguard.core.enums import (
    ConsentType,
    DataRight,
    DeletionProcedure,
    Environment,
    FieldType,
    LawCode,
    Sensitivity,
    WarningLevel,
)
from dataguard.core.exceptions import (
    ComplianceProcessingError,
    ConsentNotFoundError,
    DataGuardError,
    DecryptionError,
    EncryptionError,
    InvalidInputError,
    KeyConfigurationError,
)
from dataguard.core.models import (
    CCPARights,
    ComplianceMetadata,
    ComplianceWarning,
    ConsentAuditTrail,
    ConsentRecord,
    ConsentSummary,
    DeletionMetadata,
    DeletionPlan,
    FieldClassification,
    ProcessingContext,
    ProcessingResult,
    WithdrawalRecord,
)
from dataguard.core.classifier import FieldClassifier, FieldProfile
from dataguard.core.rules import ObligationResolver
from dataguard.core.engine import DataGuard

__all__ = [
    # Config
    "DataGuardConfig",
    # Enums
    "ConsentType",
    "DataRight",
    "DeletionProcedure",
    "Environment",
    "FieldType",
    "LawCode",
    "Sensitivity",
    "WarningLevel",
    # Exceptions
    "ComplianceProcessingError",
    "ConsentNotFoundError",
    "DataGuardError",
    "DecryptionError",
    "EncryptionError",
    "InvalidInputError",
    "KeyConfigurationError",
    # Models
    "CCPARights",
    "ComplianceMetadata",
    "ComplianceWarning",
    "ConsentAuditTrail",
    "ConsentRecord",
    "ConsentSummary",
    "DeletionMetadata",
    "DeletionPlan",
    "FieldClassification",
    "ProcessingContext",
    "ProcessingResult",
    "WithdrawalRecord",
    # Services
    "FieldClassifier",
    "FieldProfile",
    "ObligationResolver",
    "DataGuard",
]
