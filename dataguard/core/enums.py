"""
DataGuard - Core Enumerations

Law codes, field types, sensitivity levels, consent types and the other
closed vocabularies shared by the classifier, resolver and orchestrator.
"""

from enum import Enum


class LawCode(str, Enum):
    """
    Privacy-law regimes.

    GDPR, CCPA, LGPD and PIPEDA are resolved from a processing context.
    COPPA and PCI_DSS only appear in per-field classifications.
    """
    GDPR = "GDPR"           # EU General Data Protection Regulation
    CCPA = "CCPA"           # California Consumer Privacy Act
    LGPD = "LGPD"           # Brazil Lei Geral de Proteção de Dados
    PIPEDA = "PIPEDA"       # Canada federal privacy
    COPPA = "COPPA"         # Children's Online Privacy Protection Act
    PCI_DSS = "PCI_DSS"     # Payment Card Industry Data Security Standard

    @property
    def is_resolvable(self) -> bool:
        """Check if the law can be selected from a processing context."""
        return self in {LawCode.GDPR, LawCode.CCPA, LawCode.LGPD, LawCode.PIPEDA}


class FieldType(str, Enum):
    """Kind of personal data a field carries."""
    DIRECT_IDENTIFIER = "direct_identifier"
    DEMOGRAPHIC = "demographic"
    GEOLOCATION = "geolocation"
    FINANCIAL = "financial"
    CREDENTIAL = "credential"
    BEHAVIORAL = "behavioral"
    GENERAL = "general"


class Sensitivity(str, Enum):
    """
    Ordinal sensitivity of a field.

    Drives encryption and retention policy: low < medium < high < critical.
    """
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Get ordinal position (0 = low)."""
        return {
            Sensitivity.LOW: 0,
            Sensitivity.MEDIUM: 1,
            Sensitivity.HIGH: 2,
            Sensitivity.CRITICAL: 3,
        }[self]

    @property
    def is_high_risk(self) -> bool:
        """High and critical fields count towards the minimization warning."""
        return self.rank >= Sensitivity.HIGH.rank


class ConsentType(str, Enum):
    """Granular consent preferences tracked per record."""
    NECESSARY = "necessary"                         # Cannot be withdrawn
    MARKETING = "marketing"
    ANALYTICS = "analytics"
    PERSONALIZATION = "personalization"
    THIRD_PARTY_SHARING = "third_party_sharing"
    INTERNATIONAL_TRANSFER = "international_transfer"


class DataRight(str, Enum):
    """Data subject rights granted by the applicable laws."""
    # GDPR Articles 15-21
    ACCESS = "right_to_access"
    RECTIFICATION = "right_to_rectification"
    ERASURE = "right_to_erasure"
    RESTRICT_PROCESSING = "right_to_restrict_processing"
    DATA_PORTABILITY = "right_to_data_portability"
    OBJECT = "right_to_object"

    # CCPA §1798.100-125
    KNOW = "right_to_know"
    DELETE = "right_to_delete"
    OPT_OUT = "right_to_opt_out"
    NON_DISCRIMINATION = "right_to_non_discrimination"


class DeletionProcedure(str, Enum):
    """How a record is removed on an erasure request."""
    FULL_DELETION = "full_deletion"
    ANONYMIZE_SENSITIVE_KEEP_ANONYMOUS = "anonymize_sensitive_keep_anonymous"


class WarningLevel(str, Enum):
    """Severity of a processing warning."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Environment(str, Enum):
    """Deployment environment marker."""
    DEVELOPMENT = "development"
    TEST = "test"
    STAGING = "staging"
    PRODUCTION = "production"

    @property
    def allows_ephemeral_keys(self) -> bool:
        """Ephemeral encryption keys are never generated in production."""
        return self != Environment.PRODUCTION
