"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, production credential gate, dev-mode warnings,
and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from influenceflow.config import Settings, get_settings, validate_credentials

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Clear get_settings lru_cache before each test."""
    get_settings.cache_clear()


def _complete_settings(tmp_path: Path, **overrides) -> Settings:
    token_file = tmp_path / "token.json"
    token_file.write_text("{}")
    values = {
        "production": True,
        "gmail_token_path": token_file,
        "agent_email": "agent@acme.test",
        "email_webhook_secret": "hook-secret",
        "stripe_secret_key": "sk_test_123",
        "stripe_webhook_secret": "whsec_123",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------


class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.webhook_port == 8000
        assert s.agent_email == ""
        assert s.database_path == Path("data/deals.db")
        assert s.audit_db_path == Path("data/audit.db")
        assert s.gmail_token_path == Path("token.json")
        assert s.external_call_timeout_seconds == 30.0
        assert s.contract_template_path is None
        assert s.stripe_configured is False

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("WEBHOOK_PORT", "9090")
        monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_env")
        monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_env")
        monkeypatch.setenv("APP_BASE_URL", "https://deals.example.test")

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.webhook_port == 9090
        assert s.stripe_secret_key.get_secret_value() == "sk_test_env"
        assert s.app_base_url == "https://deals.example.test"
        assert s.stripe_configured is True

    def test_secrets_hidden_in_repr(self) -> None:
        s = Settings(_env_file=None, stripe_secret_key="sk_live_secret")  # type: ignore[call-arg]
        assert "sk_live_secret" not in repr(s)


# ---------------------------------------------------------------------------
# Credential validation
# ---------------------------------------------------------------------------


class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_validate_credentials_production_missing(self, tmp_path: Path) -> None:
        """Production mode exits when credentials are missing."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            gmail_token_path=tmp_path / "nonexistent_token.json",
        )

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1

    def test_validate_credentials_production_valid(self, tmp_path: Path) -> None:
        """Production mode passes when all credentials exist."""
        validate_credentials(_complete_settings(tmp_path))

    @pytest.mark.parametrize(
        "override",
        [
            {"agent_email": ""},
            {"email_webhook_secret": ""},
            {"stripe_secret_key": ""},
            {"stripe_webhook_secret": ""},
        ],
        ids=["agent-email", "email-webhook-secret", "stripe-key", "stripe-webhook-secret"],
    )
    def test_each_missing_credential_fails_production(
        self, tmp_path: Path, override: dict[str, str]
    ) -> None:
        with pytest.raises(SystemExit):
            validate_credentials(_complete_settings(tmp_path, **override))

    def test_missing_contract_template_fails_production(self, tmp_path: Path) -> None:
        settings = _complete_settings(tmp_path, contract_template_path=tmp_path / "missing.txt")
        with pytest.raises(SystemExit):
            validate_credentials(settings)

    def test_validate_credentials_dev_mode_warns(self, tmp_path: Path) -> None:
        """Dev mode logs warnings but does NOT exit."""
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=False,
            gmail_token_path=tmp_path / "missing_token.json",
        )

        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------


class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Calling get_settings() twice returns the exact same object."""
        monkeypatch.delenv("PRODUCTION", raising=False)

        first = get_settings()
        second = get_settings()

        assert first is second
