"""
DataGuard - Protection Engine

Top-level orchestration of one record through:
- Law resolution and obligation execution
- Field classification
- Authenticated encryption of flagged fields
- Compliance metadata and warnings
"""

from __future__ import annotations

import asyncio
import copy
import time
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from dataguard.core.classifier import FieldClassifier
from dataguard.core.config import DataGuardConfig
from dataguard.core.enums import LawCode, Sensitivity, WarningLevel
from dataguard.core.exceptions import (
    ComplianceProcessingError,
    DataGuardError,
    InvalidInputError,
)
from dataguard.core.models import (
    ComplianceMetadata,
    ComplianceWarning,
    DeletionPlan,
    FieldClassification,
    ProcessingContext,
    ProcessingResult,
)
from dataguard.core.rules import ObligationResolver
from dataguard.encryption.service import FieldEncryptor
from dataguard.privacy.consent_service import ConsentLedger

logger = structlog.get_logger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class DataGuard:
    """
    Field classification, obligation and protection engine.

    Collaborators construct an instance explicitly and pass it where it
    is needed. Calls share no mutable state, so one instance may serve
    concurrent callers.
    """

    def __init__(
        self,
        config: DataGuardConfig | None = None,
        encryption_key: str | bytes | None = None,
        classifier: FieldClassifier | None = None,
    ):
        self.config = config if config is not None else DataGuardConfig()
        self.classifier = classifier or FieldClassifier()
        self.consent = ConsentLedger(
            consent_version=self.config.consent_version,
            require_explicit_consent=self.config.require_explicit_consent,
        )
        self.resolver = ObligationResolver(
            classifier=self.classifier,
            consent_ledger=self.consent,
            deletion_completion_days=self.config.deletion_completion_days,
        )
        self.encryptor = FieldEncryptor(
            master_key=encryption_key if encryption_key is not None else self.config.encryption_key,
            environment=self.config.env,
            iterations=self.config.kdf_iterations,
        )

        logger.info(
            "dataguard_initialized",
            environment=self.config.env.value,
            auto_encrypt=self.config.auto_encrypt,
            strict_mode=self.config.strict_mode,
        )

    # ═══════════════════════════════════════════════════════════════
    # PROCESSING
    # ═══════════════════════════════════════════════════════════════

    def process(
        self,
        record: Mapping[str, Any],
        context: ProcessingContext | Mapping[str, Any] | None = None,
    ) -> ProcessingResult:
        """
        Make a record compliant with every applicable law.

        Warnings are computed on the plaintext record, after obligations
        and before encryption, so value checks such as password length
        still see the values. Strict-mode plaintext warnings are added
        after the encryption pass.

        Args:
            record: Caller-owned record; never modified
            context: Processing context (country, action, consent flags)

        Returns:
            ProcessingResult with the new record, metadata and warnings

        Raises:
            InvalidInputError: Record is null or not a mapping
        """
        if record is None or not isinstance(record, Mapping):
            raise InvalidInputError("Data must be a non-null object")

        started = time.perf_counter()
        try:
            ctx = self._coerce_context(context)
            data = copy.deepcopy(dict(record))

            laws = self.resolver.resolve_laws(ctx)
            actions: list[str] = []
            for law in laws:
                data, law_actions = self.resolver.apply_law(data, law, ctx)
                actions.extend(law_actions)

            classifications = self.classifier.classify_record(data)
            warnings = self.check_for_warnings(data, classifications)

            if self.config.auto_encrypt:
                protected = self.encryptor.auto_encrypt_sensitive_fields(data, classifications)
                newly_encrypted = [
                    c.field for c in classifications
                    if self.encryptor.is_encrypted(protected.get(c.field))
                    and not self.encryptor.is_encrypted(data.get(c.field))
                ]
                if newly_encrypted:
                    actions.append("sensitive_fields_encrypted")
                if self.config.strict_mode:
                    warnings.extend(self._plaintext_warnings(protected, classifications))
                data = protected

            compliance = ComplianceMetadata(
                applicable_laws=laws,
                actions=actions,
                data_rights=self.resolver.data_rights(laws),
                classifications=classifications,
                processing_time_ms=_elapsed_ms(started),
            )
        except DataGuardError:
            raise
        except Exception as e:
            self._handle_error(e, "process")
            raise

        if self.config.enable_audit:
            logger.info(
                "compliance_processed",
                laws=[law.value for law in laws],
                actions=actions,
                fields=len(classifications),
                warnings=len(warnings),
                processing_time_ms=compliance.processing_time_ms,
            )

        return ProcessingResult(
            data=data,
            compliance=compliance,
            warnings=warnings,
            processing_time_ms=_elapsed_ms(started),
        )

    async def process_batch(
        self,
        records: Iterable[Mapping[str, Any]],
        context: ProcessingContext | Mapping[str, Any] | None = None,
        concurrency: int = 4,
    ) -> list[ProcessingResult]:
        """
        Process many records on worker threads.

        Key derivation is CPU-bound, so records are offloaded with
        ``asyncio.to_thread`` and bounded by ``concurrency``. Results
        keep input order.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _run(record: Mapping[str, Any]) -> ProcessingResult:
            async with semaphore:
                return await asyncio.to_thread(self.process, record, context)

        return list(await asyncio.gather(*(_run(record) for record in records)))

    def classify_record(self, record: Mapping[str, Any]) -> list[FieldClassification]:
        """Classify a record's fields without modifying it."""
        if record is None or not isinstance(record, Mapping):
            raise InvalidInputError("Data must be a non-null object")
        return self.classifier.classify_record(record)

    def handle_deletion(self, user_id: str, law: LawCode | str = LawCode.GDPR) -> DeletionPlan:
        """Get the erasure checklist for a user under a law."""
        try:
            return self.resolver.handle_deletion(user_id, law)
        except Exception as e:
            self._handle_error(e, "handle_deletion")
            raise

    def decrypt_record(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """
        Decrypt every encrypted field of a processed record.

        Raises:
            DecryptionError: A field fails authentication
        """
        if record is None or not isinstance(record, Mapping):
            raise InvalidInputError("Data must be a non-null object")
        return self.encryptor.auto_decrypt_sensitive_fields(record)

    # ═══════════════════════════════════════════════════════════════
    # WARNINGS
    # ═══════════════════════════════════════════════════════════════

    def check_for_warnings(
        self,
        record: Mapping[str, Any],
        classifications: list[FieldClassification] | None = None,
    ) -> list[ComplianceWarning]:
        """Read-only checks over a record; never modifies it."""
        warnings: list[ComplianceWarning] = []
        if classifications is None:
            classifications = self.classifier.classify_record(record)

        password = record.get("password")
        if isinstance(password, str) and len(password) < self.config.password_min_length:
            warnings.append(ComplianceWarning(
                level=WarningLevel.HIGH,
                message=(
                    "Password is too weak (minimum "
                    f"{self.config.password_min_length} characters recommended)"
                ),
                field="password",
                recommendation="enforce_stronger_password_policy",
            ))

        if self.consent.current_consent(record) is None:
            warnings.append(ComplianceWarning(
                level=WarningLevel.MEDIUM,
                message="No explicit consent recorded for data processing",
                field="_consent",
                recommendation="capture_explicit_consent_with_timestamp",
            ))

        high_risk = sum(1 for c in classifications if Sensitivity(c.sensitivity).is_high_risk)
        if high_risk > self.config.max_high_sensitivity_fields:
            warnings.append(ComplianceWarning(
                level=WarningLevel.MEDIUM,
                message=(
                    f"Collecting {high_risk} high-sensitivity fields - "
                    "consider data minimization"
                ),
                recommendation="review_data_collection_practices",
            ))

        return warnings

    def _plaintext_warnings(
        self,
        record: Mapping[str, Any],
        classifications: list[FieldClassification],
    ) -> list[ComplianceWarning]:
        """Flag fields that required encryption but were stored in plaintext."""
        return [
            ComplianceWarning(
                level=WarningLevel.HIGH,
                message=f"Field '{c.field}' requires encryption but is stored in plaintext",
                field=c.field,
                recommendation="check_encryption_configuration",
            )
            for c in classifications
            if c.encryption_required
            and record.get(c.field) is not None
            and not self.encryptor.is_encrypted(record.get(c.field))
        ]

    # ═══════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════

    @staticmethod
    def _coerce_context(context: ProcessingContext | Mapping[str, Any] | None) -> ProcessingContext:
        if context is None:
            return ProcessingContext()
        if isinstance(context, ProcessingContext):
            return context
        return ProcessingContext.model_validate(dict(context))

    def _handle_error(self, error: Exception, method: str) -> None:
        """
        Log an unexpected error.

        In production the error is replaced by a generic
        ComplianceProcessingError; elsewhere the caller re-raises it.
        """
        logger.error(
            "dataguard_error",
            method=method,
            error_type=type(error).__name__,
            error=str(error),
        )
        if self.config.is_production:
            raise ComplianceProcessingError(f"Compliance processing failed in {method}") from None
