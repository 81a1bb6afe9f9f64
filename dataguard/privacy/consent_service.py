"""
DataGuard - Consent Ledger

Consent state attached to a record, implementing:
- GDPR Article 7 (Conditions for consent)
- GDPR Article 7(3) (Withdrawal as easy as giving consent)
- Granular per-purpose preferences
- Append-only consent history and withdrawal trail

The ledger never touches encryption or classification. Every operation
returns a new record; the input record is never modified.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

import structlog

from dataguard.core.enums import ConsentType
from dataguard.core.exceptions import ConsentNotFoundError
from dataguard.core.models import (
    CONSENT_KEY,
    ConsentAuditTrail,
    ConsentRecord,
    ConsentSummary,
    ProcessingContext,
    WithdrawalRecord,
)

logger = structlog.get_logger(__name__)

WITHDRAW_ALL = "all"

# Preference defaults when the caller does not say otherwise
DEFAULT_PREFERENCES: dict[str, bool] = {
    ConsentType.NECESSARY.value: True,
    ConsentType.MARKETING.value: False,
    ConsentType.ANALYTICS.value: True,
    ConsentType.PERSONALIZATION.value: False,
    ConsentType.THIRD_PARTY_SHARING.value: False,
    ConsentType.INTERNATIONAL_TRANSFER.value: False,
}

CONSENT_TEXTS: dict[str, dict[str, Any]] = {
    ConsentType.NECESSARY.value: {
        "title": "Necessary Cookies",
        "text": "These cookies are necessary for the website to function and cannot be switched off.",
        "required": True,
        "lawful_basis": "contract",
    },
    ConsentType.MARKETING.value: {
        "title": "Marketing Communications",
        "text": "I agree to receive marketing communications and promotional materials via email and SMS.",
        "required": False,
        "lawful_basis": "consent",
    },
    ConsentType.ANALYTICS.value: {
        "title": "Analytics Cookies",
        "text": "I agree to the use of analytics cookies to help improve the website experience.",
        "required": False,
        "lawful_basis": "consent",
    },
    ConsentType.PERSONALIZATION.value: {
        "title": "Personalization",
        "text": "I agree to the processing of my data for personalization purposes.",
        "required": False,
        "lawful_basis": "consent",
    },
}

GENERIC_CONSENT_TEXT: dict[str, Any] = {
    "title": "Data Processing",
    "text": "I agree to the processing of my personal data for the specified purpose.",
    "required": False,
    "lawful_basis": "consent",
}


def _type_key(consent_type: ConsentType | str) -> str:
    """Normalize a consent type to its preference key."""
    return consent_type.value if isinstance(consent_type, ConsentType) else str(consent_type)


class ConsentLedger:
    """
    Record-annotation consent management.

    A record carries at most one ``current`` consent plus append-only
    ``history`` and ``withdrawals`` sequences under ``_consent``.
    """

    def __init__(
        self,
        consent_version: str = "1.0",
        require_explicit_consent: bool = True,
    ):
        self.consent_version = consent_version
        self.require_explicit_consent = require_explicit_consent

    # ───────────────────────────────────────────────────────────────
    # CONSENT COLLECTION
    # ───────────────────────────────────────────────────────────────

    def build_consent(
        self,
        options: Mapping[str, Any] | None = None,
        context: ProcessingContext | None = None,
    ) -> ConsentRecord:
        """Build a consent record from caller options and request context."""
        options = options or {}
        context = context or ProcessingContext()

        preferences = dict(DEFAULT_PREFERENCES)
        for key in preferences:
            if key in options and options[key] is not None:
                preferences[key] = bool(options[key])
        # Necessary processing cannot be opted out of
        preferences[ConsentType.NECESSARY.value] = True

        return ConsentRecord(
            version=self.consent_version,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            purpose=options.get("purpose") or "general_processing",
            specific=options.get("specific") is not False,
            informed=options.get("informed") is not False,
            unambiguous=options.get("unambiguous") is not False,
            preferences=preferences,
            requires_explicit_action=self.require_explicit_consent,
        )

    def record_consent(
        self,
        record: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
        context: ProcessingContext | None = None,
    ) -> dict[str, Any]:
        """
        Record consent on a copy of the record.

        Any existing ``current`` consent is appended to ``history``
        before being replaced.
        """
        consent = self.build_consent(options, context)
        result = copy.deepcopy(dict(record))
        ledger = result.get(CONSENT_KEY)

        if not ledger or not ledger.get("current"):
            history = list(ledger.get("history", [])) if ledger else []
            withdrawals = list(ledger.get("withdrawals", [])) if ledger else []
        else:
            history = [*ledger.get("history", []), ledger["current"]]
            withdrawals = list(ledger.get("withdrawals", []))

        result[CONSENT_KEY] = {
            "current": consent.model_dump(mode="json"),
            "history": history,
            "withdrawals": withdrawals,
        }

        logger.info(
            "consent_recorded",
            purpose=consent.purpose,
            history_length=len(history),
            preferences=consent.preferences,
        )

        return result

    def withdraw_consent(
        self,
        record: Mapping[str, Any],
        consent_type: ConsentType | str = WITHDRAW_ALL,
        context: ProcessingContext | None = None,
    ) -> dict[str, Any]:
        """
        Withdraw consent on a copy of the record.

        Per GDPR Article 7(3). ``"all"`` zeroes every preference except
        ``necessary``; a specific type zeroes only that preference.

        Raises:
            ConsentNotFoundError: The record carries no current consent
        """
        ledger = record.get(CONSENT_KEY)
        if not ledger or not ledger.get("current"):
            raise ConsentNotFoundError("No consent records found for user")

        context = context or ProcessingContext()
        type_key = _type_key(consent_type)
        result = copy.deepcopy(dict(record))
        ledger = result[CONSENT_KEY]
        previous = ledger["current"]

        withdrawal = WithdrawalRecord(
            withdrawn_consent_type=type_key,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            previous_consent=copy.deepcopy(previous),
        ).model_dump(mode="json")

        preferences = dict(previous.get("preferences", {}))
        updated = dict(previous)
        if type_key == WITHDRAW_ALL:
            preferences = {key: False for key in DEFAULT_PREFERENCES}
            updated["withdrawn"] = True
        elif type_key != ConsentType.NECESSARY.value:
            preferences[type_key] = False
        preferences[ConsentType.NECESSARY.value] = True

        updated["preferences"] = preferences
        updated["withdrawal_recorded"] = True
        updated["last_withdrawal"] = withdrawal

        result[CONSENT_KEY] = {
            "current": updated,
            "history": list(ledger.get("history", [])),
            "withdrawals": [*ledger.get("withdrawals", []), withdrawal],
        }

        logger.info(
            "consent_withdrawn",
            consent_type=type_key,
            total_withdrawals=len(result[CONSENT_KEY]["withdrawals"]),
        )

        return result

    def detect_implicit_consent(self, source: str = "implicit") -> ConsentRecord:
        """
        Describe consent implied by behavior rather than given explicitly.

        The result is deliberately not Article 7 compliant and flags a
        follow-up explicit confirmation.
        """
        return ConsentRecord(
            version=self.consent_version,
            lawful_basis="legitimate_interest",
            purpose="essential_operations",
            specific=False,
            informed=False,
            unambiguous=False,
            preferences={ConsentType.NECESSARY.value: True},
            requires_explicit_action=self.require_explicit_consent,
            detected_from=source,
            requires_explicit_confirmation=True,
        )

    @staticmethod
    def consent_text(consent_type: ConsentType | str) -> dict[str, Any]:
        """Get display text for a consent prompt."""
        return dict(CONSENT_TEXTS.get(_type_key(consent_type), GENERIC_CONSENT_TEXT))

    # ───────────────────────────────────────────────────────────────
    # VALIDATION
    # ───────────────────────────────────────────────────────────────

    @staticmethod
    def current_consent(record: Mapping[str, Any]) -> dict[str, Any] | None:
        """Get the current consent of a record, if any."""
        ledger = record.get(CONSENT_KEY)
        if not isinstance(ledger, Mapping):
            return None
        return ledger.get("current") or None

    @staticmethod
    def is_compliant_consent(consent: Mapping[str, Any] | ConsentRecord | None) -> bool:
        """Validate consent against GDPR Article 7 requirements."""
        if consent is None:
            return False
        if isinstance(consent, ConsentRecord):
            consent = consent.model_dump(mode="json")

        return bool(
            consent.get("specific") is True
            and consent.get("informed") is True
            and consent.get("unambiguous") is True
            and consent.get("recorded_at")
            and consent.get("purpose")
            and consent.get("can_withdraw") is True
        )

    def has_valid_consent(
        self,
        record: Mapping[str, Any],
        processing_type: ConsentType | str,
    ) -> bool:
        """
        Check if the record's consent covers a processing type.

        Compliance of the consent itself is checked first; necessary
        processing is then always allowed.
        """
        consent = self.current_consent(record)
        if not self.is_compliant_consent(consent):
            return False

        type_key = _type_key(processing_type)
        if type_key == ConsentType.NECESSARY.value:
            return True
        return consent.get("preferences", {}).get(type_key) is True

    # ───────────────────────────────────────────────────────────────
    # AUDIT
    # ───────────────────────────────────────────────────────────────

    def audit_trail(self, record: Mapping[str, Any]) -> ConsentAuditTrail:
        """Get the consent audit trail for compliance reporting."""
        current = self.current_consent(record)
        if current is None:
            return ConsentAuditTrail(
                has_consent=False,
                message="No consent records found",
            )

        ledger = record[CONSENT_KEY]
        history = list(ledger.get("history", []))
        withdrawals = list(ledger.get("withdrawals", []))

        summary = ConsentSummary(
            consent_given=current.get("recorded_at"),
            purpose=current.get("purpose"),
            preferences=dict(current.get("preferences", {})),
            total_consent_changes=len(history),
            total_withdrawals=len(withdrawals),
            last_change=history[-1].get("recorded_at") if history else None,
            compliant=self.is_compliant_consent(current),
            can_withdraw=current.get("can_withdraw") is True,
            informed=current.get("informed") is True,
        )

        return ConsentAuditTrail(
            has_consent=True,
            current=copy.deepcopy(current),
            history=copy.deepcopy(history),
            withdrawals=copy.deepcopy(withdrawals),
            summary=summary,
        )
