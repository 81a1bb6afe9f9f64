"""
DataGuard - Core Models

Pydantic models for processing contexts, field classifications, consent
records, deletion and CCPA metadata, warnings and processing results.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dataguard.core.enums import (
    DataRight,
    DeletionProcedure,
    FieldType,
    LawCode,
    Sensitivity,
    WarningLevel,
)

# Annotation keys the core owns inside a record
CONSENT_KEY = "_consent"
DELETION_METADATA_KEY = "_deletion_metadata"
CCPA_RIGHTS_KEY = "_ccpa_rights"

RESERVED_KEYS = frozenset({CONSENT_KEY, DELETION_METADATA_KEY, CCPA_RIGHTS_KEY})


def utcnow() -> datetime:
    """Get the current UTC time."""
    return datetime.now(UTC)


# ═══════════════════════════════════════════════════════════════════════════
# BASE MODELS
# ═══════════════════════════════════════════════════════════════════════════


class DataGuardModel(BaseModel):
    """Base model for all DataGuard entities."""

    model_config = ConfigDict(populate_by_name=True)


# ═══════════════════════════════════════════════════════════════════════════
# PROCESSING CONTEXT
# ═══════════════════════════════════════════════════════════════════════════


class ProcessingContext(DataGuardModel):
    """
    Caller-supplied context for one processing call.

    Read-only to the engine. ``country`` drives law resolution and
    ``consent_flags`` seed the consent recorded under GDPR.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    country: str | None = None
    action: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    consent_flags: dict[str, bool] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════


class FieldClassification(DataGuardModel):
    """Sensitivity classification of a single record field."""

    field: str
    type: FieldType
    sensitivity: Sensitivity
    applicable_laws: list[LawCode] = Field(default_factory=lambda: [LawCode.GDPR])
    encryption_required: bool = False
    retention_days: int = Field(default=365, ge=0)
    recommendation: str = "standard_handling"
    masked_value: Any = Field(
        default=None,
        description="Masked preview of the value; None for structured values",
    )


# ═══════════════════════════════════════════════════════════════════════════
# CONSENT
# ═══════════════════════════════════════════════════════════════════════════


class ConsentRecord(DataGuardModel):
    """
    A single consent grant.

    Per GDPR Article 7. Stored in JSON form under the record's
    ``_consent.current`` key and moved to ``history`` when superseded.
    """

    version: str = "1.0"
    recorded_at: datetime = Field(default_factory=utcnow)
    ip_address: str | None = None
    user_agent: str | None = None

    # Article 7 requirements
    lawful_basis: str = "consent"
    purpose: str = "general_processing"
    specific: bool = True
    informed: bool = True
    unambiguous: bool = True

    # Granular preferences (ConsentType value -> granted)
    preferences: dict[str, bool] = Field(default_factory=dict)

    # Legal metadata
    regulation: LawCode = LawCode.GDPR
    article: str = "Article_7"
    requires_explicit_action: bool = True

    # Withdrawal
    can_withdraw: bool = True
    withdrawal_method: str = "same_as_consent_method"
    withdrawal_recorded: bool = False
    withdrawn: bool = False
    last_withdrawal: dict[str, Any] | None = None

    # Implicit consent only
    detected_from: str | None = None
    requires_explicit_confirmation: bool = False


class WithdrawalRecord(DataGuardModel):
    """Immutable entry in the ``_consent.withdrawals`` sequence."""

    withdrawn_at: datetime = Field(default_factory=utcnow)
    withdrawn_consent_type: str
    ip_address: str | None = None
    user_agent: str | None = None
    previous_consent: dict[str, Any] = Field(
        description="Snapshot of the current consent immediately before withdrawal",
    )


class ConsentSummary(DataGuardModel):
    """Human-readable consent summary for compliance reporting."""

    consent_given: str | None = None
    purpose: str | None = None
    preferences: dict[str, bool] = Field(default_factory=dict)
    total_consent_changes: int = 0
    total_withdrawals: int = 0
    last_change: str | None = None
    compliant: bool = False
    can_withdraw: bool = False
    informed: bool = False


class ConsentAuditTrail(DataGuardModel):
    """Full consent state of a record."""

    has_consent: bool
    message: str | None = None
    current: dict[str, Any] | None = None
    history: list[dict[str, Any]] = Field(default_factory=list)
    withdrawals: list[dict[str, Any]] = Field(default_factory=list)
    summary: ConsentSummary | None = None


# ═══════════════════════════════════════════════════════════════════════════
# OBLIGATION METADATA
# ═══════════════════════════════════════════════════════════════════════════


class DeletionMetadata(DataGuardModel):
    """Right-to-erasure preparation attached under GDPR Article 17."""

    can_be_deleted: bool
    retention_period_days: int = Field(ge=0)
    deletion_procedure: DeletionProcedure
    consent_withdrawal_impact: str = "stop_processing_immediately"


class CCPARights(DataGuardModel):
    """CCPA rights block; defaults to the protective opt-out stance."""

    opt_out_of_sale: bool = True
    verified: bool = False
    last_updated: datetime = Field(default_factory=utcnow)
    method: str = "user_request"


class DeletionPlan(DataGuardModel):
    """Law-dependent checklist for an erasure request."""

    user_id: str
    law: str
    actions: list[str]
    estimated_completion_days: int
    user_notification_required: bool = True
    legal_review_required: bool = False


# ═══════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════


class ComplianceWarning(DataGuardModel):
    """Advisory finding about a processed record."""

    level: WarningLevel
    message: str
    field: str | None = None
    recommendation: str


class ComplianceMetadata(DataGuardModel):
    """Side-channel metadata for one processing call."""

    processed_at: datetime = Field(default_factory=utcnow)
    applicable_laws: list[LawCode] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    data_rights: list[DataRight] = Field(default_factory=list)
    classifications: list[FieldClassification] = Field(default_factory=list)
    processing_time_ms: int = 0


class ProcessingResult(DataGuardModel):
    """
    Output of ``DataGuard.process``.

    ``data`` is a new record; the caller's input is never modified.
    """

    data: dict[str, Any]
    compliance: ComplianceMetadata
    warnings: list[ComplianceWarning] = Field(default_factory=list)
    processing_time_ms: int = 0
