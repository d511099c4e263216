"""
Tests for configuration, secrets handling and audit logging.
"""
import logging

import pytest

from contract_intel.auth import AuditAction, LoggingAuditSink
from contract_intel.auth.audit import record_safely
from contract_intel.config import AuthSettings, build_database_url
from contract_intel.utils.secrets import get_secret, mask_email, mask_secret


# ============================================
# Settings Tests
# ============================================

class TestAuthSettings:
    """Test settings defaults and environment loading."""

    def test_defaults(self):
        settings = AuthSettings()

        assert settings.reset_token_expiry_hours == 24
        assert settings.reset_token_ttl.total_seconds() == 24 * 3600
        assert settings.password_min_length == 8
        assert settings.totp_valid_window == 1
        assert settings.recovery_code_count == 10
        assert settings.recovery_code_length == 8
        assert settings.mfa_secret_encryption_key is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RESET_TOKEN_EXPIRY_HOURS", "2")
        monkeypatch.setenv("TOTP_ISSUER", "Acme Procurement")
        monkeypatch.setenv("TOTP_VALID_WINDOW", "0")
        monkeypatch.setenv("MFA_SECRET_ENCRYPTION_KEY", "k" * 44)

        settings = AuthSettings.from_env()

        assert settings.reset_token_expiry_hours == 2
        assert settings.totp_issuer == "Acme Procurement"
        assert settings.totp_valid_window == 0
        assert settings.mfa_secret_encryption_key == "k" * 44

    def test_blank_env_uses_default(self, monkeypatch):
        monkeypatch.setenv("RECOVERY_CODE_COUNT", " ")
        assert AuthSettings.from_env().recovery_code_count == 10

    def test_non_integer_env_rejected(self, monkeypatch):
        monkeypatch.setenv("RESET_TOKEN_EXPIRY_HOURS", "a day")
        with pytest.raises(ValueError):
            AuthSettings.from_env()

    @pytest.mark.parametrize("kwargs", [
        {"reset_token_expiry_hours": 0},
        {"totp_valid_window": -1},
        {"recovery_code_count": 0},
        {"recovery_code_length": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            AuthSettings(**kwargs)


class TestDatabaseUrl:
    """Test connection URL resolution."""

    def test_explicit_url_wins(self, monkeypatch):
        monkeypatch.setenv("AUTH_DATABASE_URL", "sqlite:///auth.db")
        assert build_database_url() == "sqlite:///auth.db"

    def test_built_from_postgres_vars(self, monkeypatch):
        monkeypatch.delenv("AUTH_DATABASE_URL", raising=False)
        monkeypatch.delenv("POSTGRES_PASSWORD_FILE", raising=False)
        monkeypatch.setenv("POSTGRES_HOST", "db")
        monkeypatch.setenv("POSTGRES_PORT", "5433")
        monkeypatch.setenv("POSTGRES_DB", "intel")
        monkeypatch.setenv("POSTGRES_USER", "svc")
        monkeypatch.setenv("POSTGRES_PASSWORD", "pw")

        assert build_database_url() == "postgresql://svc:pw@db:5433/intel"


# ============================================
# Secrets Tests
# ============================================

class TestSecrets:
    """Test secret resolution and masking."""

    def test_file_takes_priority(self, tmp_path, monkeypatch):
        secret_file = tmp_path / "key"
        secret_file.write_text("from-file\n")
        monkeypatch.setenv("EXAMPLE_KEY_FILE", str(secret_file))
        monkeypatch.setenv("EXAMPLE_KEY", "from-env")

        assert get_secret("EXAMPLE_KEY") == "from-file"

    def test_env_fallback(self, monkeypatch):
        monkeypatch.delenv("EXAMPLE_KEY_FILE", raising=False)
        monkeypatch.setenv("EXAMPLE_KEY", "from-env")
        assert get_secret("EXAMPLE_KEY") == "from-env"

    def test_default(self, monkeypatch):
        monkeypatch.delenv("EXAMPLE_KEY", raising=False)
        monkeypatch.delenv("EXAMPLE_KEY_FILE", raising=False)
        assert get_secret("EXAMPLE_KEY", "fallback") == "fallback"

    def test_unreadable_file_falls_back_to_env(self, tmp_path, monkeypatch, caplog):
        monkeypatch.setenv("EXAMPLE_KEY_FILE", str(tmp_path / "missing"))
        monkeypatch.setenv("EXAMPLE_KEY", "from-env")

        with caplog.at_level(logging.WARNING):
            assert get_secret("EXAMPLE_KEY") == "from-env"
        assert "EXAMPLE_KEY_FILE" in caplog.text
        assert "from-env" not in caplog.text

    def test_mask_secret(self):
        assert mask_secret("abcdefghijklmnop") == "abcd...mnop"
        assert mask_secret("short") == "***"
        assert mask_secret("") == "***"

    def test_mask_email(self):
        assert mask_email("analyst@agency.gov") == "a***@agency.gov"
        assert mask_email("not-an-email") == "not-...mail"


# ============================================
# Audit Logging Tests
# ============================================

class TestAuditLogging:
    """Test the logging sink and failure isolation."""

    def test_logging_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="contract_intel.audit"):
            LoggingAuditSink().record(AuditAction.MFA_ENABLED, "User", "u-1", "MFA enabled")

        assert "MFA_ENABLED User=u-1: MFA enabled" in caplog.text

    def test_record_safely_without_sink(self):
        record_safely(None, AuditAction.MFA_DISABLED, "User", "u-1", "ignored")

    def test_record_safely_logs_failure(self, caplog):
        class BrokenSink(LoggingAuditSink):
            def record(self, *args):
                raise RuntimeError("disk full")

        with caplog.at_level(logging.WARNING):
            record_safely(BrokenSink(), AuditAction.MFA_DISABLED, "User", "u-1", "msg")

        assert "Failed to record audit event MFA_DISABLED" in caplog.text
