"""
DataGuard - Obligation Resolver

Determines which privacy laws apply to a processing context and executes
each law's deterministic record mutations:
- GDPR Article 6/7: consent recording
- GDPR Article 5(1)(c): data minimization
- GDPR Article 17: right-to-erasure preparation
- CCPA §1798.120: opt-out of sale
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import structlog

from dataguard.core.classifier import FieldClassifier
from dataguard.core.enums import ConsentType, DataRight, DeletionProcedure, LawCode
from dataguard.core.models import (
    CCPA_RIGHTS_KEY,
    DELETION_METADATA_KEY,
    CCPARights,
    DeletionMetadata,
    DeletionPlan,
    ProcessingContext,
)
from dataguard.privacy.consent_service import ConsentLedger

logger = structlog.get_logger(__name__)

Record = dict[str, Any]
LawHandler = Callable[[Record, ProcessingContext], tuple[Record, list[str]]]

# Resolution order of the returned law list
LAW_ORDER: tuple[LawCode, ...] = (LawCode.GDPR, LawCode.CCPA, LawCode.LGPD, LawCode.PIPEDA)

# Country (ISO 3166-1 alpha-2) -> laws added on top of the GDPR baseline
COUNTRY_LAWS: dict[str, tuple[LawCode, ...]] = {
    "US": (LawCode.CCPA,),
    "CA": (LawCode.CCPA, LawCode.PIPEDA),
    "BR": (LawCode.LGPD,),
}

DATA_RIGHTS: dict[LawCode, tuple[DataRight, ...]] = {
    LawCode.GDPR: (
        DataRight.ACCESS,
        DataRight.RECTIFICATION,
        DataRight.ERASURE,
        DataRight.RESTRICT_PROCESSING,
        DataRight.DATA_PORTABILITY,
        DataRight.OBJECT,
    ),
    LawCode.CCPA: (
        DataRight.KNOW,
        DataRight.DELETE,
        DataRight.OPT_OUT,
        DataRight.NON_DISCRIMINATION,
    ),
}

# More data than basic operations need
EXCESSIVE_FIELDS = frozenset({"socialSecurity", "driversLicense", "passportNumber"})

# action -> fields that action never needs
MINIMIZATION_RULES: dict[str, tuple[str, ...]] = {
    "registration": ("gps",),
}

# Fields that keep a record identifiable, forcing anonymization over deletion
CRITICAL_IDENTIFYING_FIELDS = ("email", "phone", "userId")

DEFAULT_RETENTION_DAYS = 365

BASE_DELETION_ACTIONS = (
    "verify_user_identity",
    "identify_all_data_locations",
    "assess_legal_retention_requirements",
)

DELETION_ACTIONS: dict[LawCode, tuple[str, ...]] = {
    LawCode.GDPR: (
        "anonymize_personal_data",
        "retain_anonymous_transactions_7_years",
        "notify_third_parties_of_deletion",
        "provide_deletion_confirmation",
    ),
    LawCode.CCPA: (
        "delete_personal_information",
        "maintain_service_after_deletion",
        "verify_deletion_completion",
        "provide_verification_method",
    ),
}

# Context consent flags copied into a GDPR consent record
CONSENT_FLAG_KEYS = (
    ConsentType.MARKETING.value,
    ConsentType.ANALYTICS.value,
    ConsentType.PERSONALIZATION.value,
    ConsentType.THIRD_PARTY_SHARING.value,
    ConsentType.INTERNATIONAL_TRANSFER.value,
)


def _law_code(law: LawCode | str) -> LawCode | None:
    """Parse a law code, returning None for unknown codes."""
    if isinstance(law, LawCode):
        return law
    try:
        return LawCode(str(law).strip().upper())
    except ValueError:
        return None


class ObligationResolver:
    """
    Rule-based law resolution and obligation execution.

    Handlers are looked up per law code; codes without a handler are
    no-ops, so new laws only need a new table entry.
    """

    def __init__(
        self,
        classifier: FieldClassifier | None = None,
        consent_ledger: ConsentLedger | None = None,
        deletion_completion_days: int = 30,
    ):
        self.classifier = classifier or FieldClassifier()
        self.consent_ledger = consent_ledger or ConsentLedger()
        self.deletion_completion_days = deletion_completion_days

        self._handlers: dict[LawCode, LawHandler] = {
            LawCode.GDPR: self._apply_gdpr,
            LawCode.CCPA: self._apply_ccpa,
        }

    # ═══════════════════════════════════════════════════════════════
    # LAW RESOLUTION
    # ═══════════════════════════════════════════════════════════════

    def resolve_laws(self, context: ProcessingContext | None = None) -> list[LawCode]:
        """
        Determine applicable laws from the context country.

        GDPR is always applied as the most protective baseline.
        """
        laws = {LawCode.GDPR}
        if context is not None and context.country:
            laws.update(COUNTRY_LAWS.get(context.country.strip().upper(), ()))
        return [law for law in LAW_ORDER if law in laws]

    @staticmethod
    def data_rights(laws: Iterable[LawCode]) -> list[DataRight]:
        """Union of data subject rights, first-seen order."""
        rights: list[DataRight] = []
        for law in laws:
            rights.extend(DATA_RIGHTS.get(law, ()))
        return list(dict.fromkeys(rights))

    # ═══════════════════════════════════════════════════════════════
    # OBLIGATIONS
    # ═══════════════════════════════════════════════════════════════

    def apply_law(
        self,
        record: Mapping[str, Any],
        law: LawCode | str,
        context: ProcessingContext | None = None,
    ) -> tuple[Record, list[str]]:
        """
        Apply one law's obligations to a copy of the record.

        Returns:
            (new record, action tags emitted)
        """
        context = context or ProcessingContext()
        code = _law_code(law)
        handler = self._handlers.get(code) if code is not None else None
        if handler is None:
            logger.debug("law_has_no_obligations", law=str(law))
            return copy.deepcopy(dict(record)), []
        return handler(copy.deepcopy(dict(record)), context)

    def _apply_gdpr(self, data: Record, context: ProcessingContext) -> tuple[Record, list[str]]:
        actions: list[str] = []

        # Article 6/7: lawful basis and consent
        if self.consent_ledger.current_consent(data) is None:
            options: dict[str, Any] = {"purpose": context.action or "general_processing"}
            for key in CONSENT_FLAG_KEYS:
                if key in context.consent_flags:
                    options[key] = context.consent_flags[key]
            data = self.consent_ledger.record_consent(data, options, context)
            actions.append("gdpr_consent_recorded")

        # Article 5: data minimization
        if self.has_excessive_data(data):
            data = self.minimize_data(data, context)
            actions.append("gdpr_data_minimization_applied")

        # Article 17: right to erasure preparation
        if DELETION_METADATA_KEY not in data:
            data[DELETION_METADATA_KEY] = self.deletion_metadata(data).model_dump(mode="json")
            actions.append("gdpr_deletion_metadata_added")

        return data, actions

    def _apply_ccpa(self, data: Record, context: ProcessingContext) -> tuple[Record, list[str]]:
        actions: list[str] = []

        if CCPA_RIGHTS_KEY not in data:
            data[CCPA_RIGHTS_KEY] = CCPARights().model_dump(mode="json")
            actions.append("ccpa_rights_metadata_added")

        return data, actions

    # ───────────────────────────────────────────────────────────────
    # MINIMIZATION
    # ───────────────────────────────────────────────────────────────

    @staticmethod
    def has_excessive_data(record: Mapping[str, Any]) -> bool:
        """Check if the record holds more data than basic operations need."""
        return any(name in record for name in EXCESSIVE_FIELDS)

    @staticmethod
    def minimize_data(record: Mapping[str, Any], context: ProcessingContext) -> Record:
        """Drop fields the context's action does not need."""
        minimized = dict(record)
        for name in MINIMIZATION_RULES.get(context.action or "", ()):
            if minimized.pop(name, None) is not None:
                logger.info("field_minimized", field=name, action=context.action)
        return minimized

    # ───────────────────────────────────────────────────────────────
    # ERASURE
    # ───────────────────────────────────────────────────────────────

    @staticmethod
    def can_be_deleted(record: Mapping[str, Any]) -> bool:
        """A record still carrying identifying fields must be anonymized instead."""
        return not any(name in record for name in CRITICAL_IDENTIFYING_FIELDS)

    def calculate_retention_period(self, record: Mapping[str, Any]) -> int:
        """Longest retention across the record's current classifications."""
        classifications = self.classifier.classify_record(record)
        if not classifications:
            return DEFAULT_RETENTION_DAYS
        return max(c.retention_days for c in classifications)

    def deletion_metadata(self, record: Mapping[str, Any]) -> DeletionMetadata:
        """Compute erasure metadata for a record."""
        deletable = self.can_be_deleted(record)
        return DeletionMetadata(
            can_be_deleted=deletable,
            retention_period_days=self.calculate_retention_period(record),
            deletion_procedure=(
                DeletionProcedure.FULL_DELETION
                if deletable
                else DeletionProcedure.ANONYMIZE_SENSITIVE_KEEP_ANONYMOUS
            ),
        )

    def handle_deletion(self, user_id: str, law: LawCode | str = LawCode.GDPR) -> DeletionPlan:
        """
        Build the erasure checklist for a user.

        Touches no record and deletes nothing; storage collaborators
        execute the returned actions.
        """
        code = _law_code(law)
        actions = list(BASE_DELETION_ACTIONS)
        if code is not None:
            actions.extend(DELETION_ACTIONS.get(code, ()))

        plan = DeletionPlan(
            user_id=user_id,
            law=code.value if code is not None else str(law),
            actions=actions,
            estimated_completion_days=self.deletion_completion_days,
            user_notification_required=True,
            legal_review_required=code == LawCode.GDPR,
        )

        logger.info(
            "deletion_request_planned",
            law=plan.law,
            action_count=len(plan.actions),
            estimated_completion_days=plan.estimated_completion_days,
        )

        return plan
