"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

This module imports nothing from the ``influenceflow`` package so that any
module may import it.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields keep webhook and API secrets out of logs and
    error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    webhook_port: int = 8000
    app_base_url: str = "http://localhost:3000"
    external_call_timeout_seconds: float = 30.0

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/deals.db")
    audit_db_path: Path = Path("data/audit.db")

    # -- Email -----------------------------------------------------------------
    agent_email: str = ""
    message_id_domain: str = "influenceflow.local"
    email_webhook_secret: SecretStr = SecretStr("")
    gmail_token_path: Path = Path("token.json")
    gmail_credentials_path: Path = Path("credentials.json")

    # -- Payments --------------------------------------------------------------
    stripe_secret_key: SecretStr = SecretStr("")
    stripe_webhook_secret: SecretStr = SecretStr("")

    # -- Contracts -------------------------------------------------------------
    contract_template_path: Path | None = None

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    @property
    def stripe_configured(self) -> bool:
        """Return True when both Stripe secrets are present."""
        return bool(
            self.stripe_secret_key.get_secret_value()
            and self.stripe_webhook_secret.get_secret_value()
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list, never the exception text,
        # which may echo raw secret values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    and the development fallbacks (logging email transport, simulated
    payment gateway) are used instead.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.gmail_token_path.exists():
        errors.append(f"Gmail token file not found: {settings.gmail_token_path}")

    if not settings.agent_email:
        errors.append("AGENT_EMAIL is empty or not set")

    if not settings.email_webhook_secret.get_secret_value():
        errors.append("EMAIL_WEBHOOK_SECRET is empty or not set")

    if not settings.stripe_secret_key.get_secret_value():
        errors.append("STRIPE_SECRET_KEY is empty or not set")

    if not settings.stripe_webhook_secret.get_secret_value():
        errors.append("STRIPE_WEBHOOK_SECRET is empty or not set")

    if settings.contract_template_path is not None and not settings.contract_template_path.exists():
        errors.append(f"Contract template not found: {settings.contract_template_path}")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
