"""
DataGuard - Field Classifier

Maps a field name/value pair to a sensitivity classification.

Lookup order:
1. Exact match against well-known field names
2. Ordered substring rules over the lowercased field name
3. Default general/low profile
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from dataguard.core.enums import FieldType, LawCode, Sensitivity
from dataguard.core.models import RESERVED_KEYS, FieldClassification


@dataclass(frozen=True)
class FieldProfile:
    """Classification template shared by every field that matches it."""
    type: FieldType
    sensitivity: Sensitivity
    laws: tuple[LawCode, ...] = (LawCode.GDPR,)
    recommendation: str = "standard_handling"
    encryption_required: bool = False
    retention_days: int = 365


# ═══════════════════════════════════════════════════════════════════════════
# PROFILE TABLES
# ═══════════════════════════════════════════════════════════════════════════


_DIRECT_IDENTIFIER = FieldProfile(
    type=FieldType.DIRECT_IDENTIFIER,
    sensitivity=Sensitivity.HIGH,
    laws=(LawCode.GDPR, LawCode.CCPA),
    recommendation="encrypt_at_rest",
    encryption_required=True,
    retention_days=365,
)

KNOWN_FIELDS: dict[str, FieldProfile] = {
    # Direct identifiers
    "email": FieldProfile(
        type=FieldType.DIRECT_IDENTIFIER,
        sensitivity=Sensitivity.HIGH,
        laws=(LawCode.GDPR, LawCode.CCPA, LawCode.LGPD),
        recommendation="encrypt_at_rest",
        encryption_required=True,
        retention_days=365,
    ),
    "phone": _DIRECT_IDENTIFIER,
    "phoneNumber": _DIRECT_IDENTIFIER,

    # Demographic
    "birthdate": FieldProfile(
        type=FieldType.DEMOGRAPHIC,
        sensitivity=Sensitivity.MEDIUM,
        laws=(LawCode.GDPR, LawCode.COPPA),
        recommendation="store_age_range_instead",
        retention_days=365,
    ),
    "age": FieldProfile(
        type=FieldType.DEMOGRAPHIC,
        sensitivity=Sensitivity.LOW,
        recommendation="store_age_range",
        retention_days=365,
    ),

    # Location
    "location": FieldProfile(
        type=FieldType.GEOLOCATION,
        sensitivity=Sensitivity.HIGH,
        recommendation="store_region_instead_of_precise",
        encryption_required=True,
        retention_days=90,
    ),
    "gps": FieldProfile(
        type=FieldType.GEOLOCATION,
        sensitivity=Sensitivity.HIGH,
        recommendation="avoid_storage_use_ephemeral",
        encryption_required=True,
        retention_days=7,
    ),

    # Financial; never store, tokenize instead
    "creditCard": FieldProfile(
        type=FieldType.FINANCIAL,
        sensitivity=Sensitivity.CRITICAL,
        laws=(LawCode.GDPR, LawCode.PCI_DSS),
        recommendation="never_store_use_tokenization",
        encryption_required=True,
        retention_days=0,
    ),

    # Credentials; should be hashed, not stored
    "password": FieldProfile(
        type=FieldType.CREDENTIAL,
        sensitivity=Sensitivity.CRITICAL,
        recommendation="hash_with_salt",
        encryption_required=True,
        retention_days=0,
    ),

    # Behavioral
    "interests": FieldProfile(
        type=FieldType.BEHAVIORAL,
        sensitivity=Sensitivity.LOW,
        recommendation="anonymous_aggregation_ok",
        retention_days=730,
    ),
    "preferences": FieldProfile(
        type=FieldType.BEHAVIORAL,
        sensitivity=Sensitivity.LOW,
        recommendation="can_be_stored_anonymously",
        retention_days=730,
    ),
}


def _contains(*needles: str) -> Callable[[str], bool]:
    """Build a predicate matching any substring of a lowercased name."""
    return lambda name: any(needle in name for needle in needles)


# Evaluated in order; first match wins
PATTERN_RULES: list[tuple[Callable[[str], bool], FieldProfile]] = [
    (_contains("email"), _DIRECT_IDENTIFIER),
    (_contains("phone", "mobile"), _DIRECT_IDENTIFIER),
    (
        _contains("birth", "dob"),
        FieldProfile(
            type=FieldType.DEMOGRAPHIC,
            sensitivity=Sensitivity.MEDIUM,
            recommendation="store_age_range_instead",
        ),
    ),
    (
        _contains("location", "gps", "coord"),
        FieldProfile(
            type=FieldType.GEOLOCATION,
            sensitivity=Sensitivity.HIGH,
            recommendation="store_region_instead_of_precise",
            encryption_required=True,
            retention_days=90,
        ),
    ),
    (
        _contains("pass", "pwd"),
        FieldProfile(
            type=FieldType.CREDENTIAL,
            sensitivity=Sensitivity.CRITICAL,
            recommendation="hash_with_salt",
            encryption_required=True,
            retention_days=0,
        ),
    ),
]

DEFAULT_PROFILE = FieldProfile(
    type=FieldType.GENERAL,
    sensitivity=Sensitivity.LOW,
)


# ═══════════════════════════════════════════════════════════════════════════
# MASKING
# ═══════════════════════════════════════════════════════════════════════════


# Always masked, even when classified without a profile
MASKED_FIELD_NAMES = frozenset({"email", "phone", "phoneNumber", "password", "creditCard"})


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """Keep the first and last ``visible_chars`` characters of a string."""
    if len(value) <= visible_chars * 2:
        return "***"
    return f"{value[:visible_chars]}***{value[-visible_chars:]}"


def _mask_digits(value: str, visible_digits: int = 4) -> str:
    """Replace every digit except the last ``visible_digits`` with ``*``."""
    to_mask = max(0, sum(ch.isdigit() for ch in value) - visible_digits)

    def _replace(match: re.Match[str]) -> str:
        nonlocal to_mask
        if to_mask == 0:
            return match.group()
        to_mask -= 1
        return "*"

    return re.sub(r"\d", _replace, value)


def mask_value(field_name: str, value: Any, profile: FieldProfile | None = None) -> Any:
    """
    Produce a preview of a value that is safe to put in metadata.

    Structured values are never previewed. Scalars of sensitive fields
    are masked whatever their type: credentials fully, financial values
    down to the last four digits. Low and medium scalars are returned
    verbatim.
    """
    if isinstance(value, (dict, list, tuple, set)):
        return None

    field_type = profile.type if profile is not None else None
    sensitive = (
        field_name in MASKED_FIELD_NAMES
        or field_type in (FieldType.CREDENTIAL, FieldType.FINANCIAL)
        or (profile is not None and profile.sensitivity.is_high_risk)
    )
    if not sensitive:
        return value
    text = value if isinstance(value, str) else str(value)

    if field_name == "password" or field_type == FieldType.CREDENTIAL:
        return "********"
    if field_name == "creditCard" or field_type == FieldType.FINANCIAL:
        digits = re.sub(r"\D", "", text)
        return f"****{digits[-4:]}" if len(digits) >= 4 else "***"
    if field_name == "email" and "@" in text:
        user, _, domain = text.partition("@")
        return f"{user[:2]}***@{domain}"
    if any(part in field_name.lower() for part in ("phone", "mobile")):
        return _mask_digits(text)
    return mask_sensitive(text)


# ═══════════════════════════════════════════════════════════════════════════
# CLASSIFIER
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class FieldClassifier:
    """
    Pure field classifier.

    The same (field name, value) pair always yields the same
    classification; inputs are never mutated.
    """
    known_fields: Mapping[str, FieldProfile] = field(default_factory=lambda: dict(KNOWN_FIELDS))
    rules: list[tuple[Callable[[str], bool], FieldProfile]] = field(
        default_factory=lambda: list(PATTERN_RULES)
    )
    default: FieldProfile = DEFAULT_PROFILE

    def profile_for(self, field_name: str) -> FieldProfile:
        """Resolve the profile for a field name."""
        profile = self.known_fields.get(field_name)
        if profile is not None:
            return profile

        lowered = field_name.lower()
        for predicate, candidate in self.rules:
            if predicate(lowered):
                return candidate
        return self.default

    def classify(
        self,
        field_name: str,
        value: Any,
        record: Mapping[str, Any] | None = None,
    ) -> FieldClassification:
        """
        Classify a single field.

        Args:
            field_name: Field key in the record
            value: Field value
            record: Whole record, for context-aware rules

        Returns:
            FieldClassification for the field
        """
        profile = self.profile_for(field_name)
        return FieldClassification(
            field=field_name,
            type=profile.type,
            sensitivity=profile.sensitivity,
            applicable_laws=list(dict.fromkeys(profile.laws)),
            encryption_required=profile.encryption_required,
            retention_days=profile.retention_days,
            recommendation=profile.recommendation,
            masked_value=mask_value(field_name, value, profile),
        )

    def classify_record(self, record: Mapping[str, Any]) -> list[FieldClassification]:
        """Classify every present field, preserving record order."""
        return [
            self.classify(name, value, record)
            for name, value in record.items()
            if value is not None and name not in RESERVED_KEYS
        ]
