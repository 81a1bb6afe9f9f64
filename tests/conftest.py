"""
Shared fixtures for DataGuard tests.

Provides configuration, engine, ledger and encryptor fixtures plus
sample records used across the core, encryption and privacy suites.
"""

from __future__ import annotations

import os
from typing import Any

import pytest

from dataguard.core.classifier import FieldClassifier
from dataguard.core.config import DataGuardConfig
from dataguard.core.engine import DataGuard
from dataguard.core.enums import Environment
from dataguard.core.models import ProcessingContext
from dataguard.core.rules import ObligationResolver
from dataguard.encryption.service import FieldEncryptor, generate_secure_key
from dataguard.privacy.consent_service import ConsentLedger


# =============================================================================
# ENVIRONMENT ISOLATION
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep host DATAGUARD_* variables and .env files out of every test."""
    for name in list(os.environ):
        if name.upper().startswith("DATAGUARD_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


# =============================================================================
# CONFIG FIXTURES
# =============================================================================


@pytest.fixture
def encryption_key() -> str:
    """Create a random 64-hex-char master key."""
    return generate_secure_key()


@pytest.fixture
def dataguard_config(encryption_key) -> DataGuardConfig:
    """Create a DataGuardConfig with test defaults."""
    return DataGuardConfig(
        env=Environment.TEST,
        encryption_key=encryption_key,
    )


@pytest.fixture
def production_config(encryption_key) -> DataGuardConfig:
    """Create a production DataGuardConfig."""
    return DataGuardConfig(
        env=Environment.PRODUCTION,
        encryption_key=encryption_key,
    )


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def guard(dataguard_config) -> DataGuard:
    """Create a DataGuard engine."""
    return DataGuard(dataguard_config)


@pytest.fixture
def classifier() -> FieldClassifier:
    """Create a field classifier."""
    return FieldClassifier()


@pytest.fixture
def ledger() -> ConsentLedger:
    """Create a consent ledger."""
    return ConsentLedger()


@pytest.fixture
def resolver(classifier, ledger) -> ObligationResolver:
    """Create an obligation resolver."""
    return ObligationResolver(classifier=classifier, consent_ledger=ledger)


@pytest.fixture
def encryptor(encryption_key) -> FieldEncryptor:
    """Create a field encryptor with a fixed master key."""
    return FieldEncryptor(master_key=encryption_key, environment=Environment.TEST)


# =============================================================================
# DATA FIXTURES
# =============================================================================


@pytest.fixture
def sample_record() -> dict[str, Any]:
    """Create a typical registration record."""
    return {
        "name": "John Doe",
        "email": "john.doe@example.com",
        "phone": "+1-555-123-4567",
        "password": "correct-horse-battery-staple",
        "age": 34,
        "interests": ["hiking", "photography"],
    }


@pytest.fixture
def us_context() -> ProcessingContext:
    """Create a US registration context."""
    return ProcessingContext(
        country="US",
        action="registration",
        ip_address="203.0.113.7",
        user_agent="pytest-agent/1.0",
        consent_flags={"marketing": True, "analytics": False},
    )


@pytest.fixture
def eu_context() -> ProcessingContext:
    """Create an EU context."""
    return ProcessingContext(country="DE", action="profile_update")
