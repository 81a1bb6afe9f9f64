"""
DataGuard - Privacy Module

Consent ledger per GDPR Article 7.
"""

from dataguard.privacy.consent_service import ConsentLedger

__all__ = [
    "ConsentLedger",
]
