"""
DataGuard - Configuration

Engine configuration loaded from ``DATAGUARD_*`` environment variables
with documented defaults. Resolved once when a ``DataGuard`` is built.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from dataguard.core.enums import Environment


class DataGuardConfig(BaseSettings):
    """
    Protection engine configuration.

    Loaded from environment variables with protective defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATAGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # ENVIRONMENT
    # ═══════════════════════════════════════════════════════════════

    env: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment; production forbids ephemeral keys",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == Environment.PRODUCTION

    # ═══════════════════════════════════════════════════════════════
    # ENCRYPTION
    # ═══════════════════════════════════════════════════════════════

    encryption_key: SecretStr | None = Field(
        default=None,
        description="Master secret, 32 bytes as 64 hex chars or raw text",
    )
    auto_encrypt: bool = Field(
        default=True,
        description="Encrypt fields whose classification requires it",
    )
    kdf_iterations: int = Field(
        default=100_000,
        ge=100_000,
        description="PBKDF2-HMAC-SHA256 iterations per derived field key",
    )

    # ═══════════════════════════════════════════════════════════════
    # CONSENT & ENFORCEMENT
    # ═══════════════════════════════════════════════════════════════

    strict_mode: bool = Field(
        default=True,
        description="Report flagged fields left in plaintext as warnings",
    )
    require_explicit_consent: bool = Field(
        default=True,
        description="Mark recorded consent as requiring explicit user action",
    )
    consent_version: str = Field(
        default="1.0",
        description="Version stamped on every consent record",
    )

    # ═══════════════════════════════════════════════════════════════
    # WARNINGS & DELETION
    # ═══════════════════════════════════════════════════════════════

    password_min_length: int = Field(
        default=12,
        ge=1,
        description="Passwords shorter than this raise a high warning",
    )
    max_high_sensitivity_fields: int = Field(
        default=3,
        ge=0,
        description="More high/critical fields than this raise a warning",
    )
    deletion_completion_days: int = Field(
        default=30,
        ge=1,
        description="Estimated completion of an erasure request",
    )

    # ═══════════════════════════════════════════════════════════════
    # AUDIT LOGGING
    # ═══════════════════════════════════════════════════════════════

    enable_audit: bool = Field(
        default=True,
        description="Emit a compliance_processed log event per record",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level applied by configure_logging_from_config",
    )
