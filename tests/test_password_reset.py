"""
Tests for password reset tokens.

Covers:
- Token issuance and enumeration resistance
- Token replacement on a new request
- Single-use redemption
- Expiry
- Pending account activation
- Purge of expired tokens
"""
import pytest
from unittest.mock import MagicMock, patch

from contract_intel.auth import AccountStatus, AuditAction, PasswordResetCoordinator
from contract_intel.auth.password_reset import hash_token
from contract_intel.config import AuthSettings
from contract_intel.database.auth_db import SqlAuthRepository


# ============================================
# Request Tests
# ============================================

class TestRequestReset:
    """Test token issuance."""

    def test_unknown_email_returns_none(self, reset_coordinator):
        assert reset_coordinator.request_reset("nobody@agency.gov") is None

    def test_blank_email_returns_none(self, reset_coordinator):
        assert reset_coordinator.request_reset("   ") is None

    def test_known_email_returns_urlsafe_token(self, reset_coordinator, active_user):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        assert token is not None
        # 32 random bytes -> 43 URL-safe base64 characters
        assert len(token) >= 43
        assert all(c.isalnum() or c in "-_" for c in token)

    def test_email_lookup_is_case_insensitive(self, reset_coordinator, active_user):
        token = reset_coordinator.request_reset("  ANALYST@agency.GOV ")
        assert reset_coordinator.resolve_user(token) == active_user

    def test_only_hash_is_stored(self, reset_coordinator, auth_db, active_user):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        with auth_db.transaction() as repo:
            assert repo.find_by_hash(token) is None
            record = repo.find_by_hash(hash_token(token))

        assert record is not None
        assert record.user_id == active_user
        assert record.token_hash != token

    def test_default_expiry_is_24_hours(self, reset_coordinator, auth_db, active_user, clock):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        with auth_db.transaction() as repo:
            record = repo.find_by_hash(hash_token(token))

        assert (record.expires_at - clock()).total_seconds() == 24 * 3600

    def test_second_request_invalidates_first(self, reset_coordinator, active_user):
        first = reset_coordinator.request_reset("analyst@agency.gov")
        second = reset_coordinator.request_reset("analyst@agency.gov")

        assert first != second
        assert reset_coordinator.validate_token(first) is False
        assert reset_coordinator.reset_password(first, "new_password_123") is False
        assert reset_coordinator.reset_password(second, "new_password_123") is True

    def test_request_locks_user_row(self, reset_coordinator, active_user):
        find_by_email = SqlAuthRepository.find_by_email
        with patch.object(SqlAuthRepository, "find_by_email", autospec=True, side_effect=find_by_email) as lookup:
            reset_coordinator.request_reset("analyst@agency.gov")

        # Concurrent requests for one account must not both see zero old tokens
        lookup.assert_called_once()
        assert lookup.call_args.kwargs.get("for_update") is True

    def test_find_by_email_for_update(self, auth_db, active_user):
        with auth_db.transaction() as repo:
            user = repo.find_by_email("analyst@agency.gov", for_update=True)
        assert user.user_id == active_user


# ============================================
# Redemption Tests
# ============================================

class TestResetPassword:
    """Test token redemption."""

    def test_reset_changes_password(self, reset_coordinator, auth_db, active_user, password_encoder, clock):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        assert reset_coordinator.reset_password(token, "brand_new_password") is True

        user = auth_db.get_user_by_id(active_user)
        assert password_encoder.matches("brand_new_password", user.password_hash)
        assert not password_encoder.matches("original_password_1", user.password_hash)
        assert user.password_changed_at == clock()

    def test_token_is_single_use(self, reset_coordinator, auth_db, active_user, password_encoder):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        assert reset_coordinator.reset_password(token, "first_new_password") is True
        assert reset_coordinator.reset_password(token, "second_new_password") is False
        assert reset_coordinator.validate_token(token) is False

        user = auth_db.get_user_by_id(active_user)
        assert password_encoder.matches("first_new_password", user.password_hash)

    def test_unknown_token_fails(self, reset_coordinator, active_user):
        assert reset_coordinator.reset_password("invalid-token-123", "new_password_123") is False

    def test_blank_token_fails(self, reset_coordinator):
        assert reset_coordinator.reset_password("", "new_password_123") is False

    def test_short_password_rejected(self, reset_coordinator, active_user):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        with pytest.raises(ValueError):
            reset_coordinator.reset_password(token, "Short1!")

        # Token is untouched by the rejected attempt
        assert reset_coordinator.validate_token(token) is True

    def test_pending_account_is_activated(self, reset_coordinator, auth_db, pending_user):
        token = reset_coordinator.request_reset("invitee@agency.gov")

        assert reset_coordinator.reset_password(token, "first_password_1") is True

        user = auth_db.get_user_by_id(pending_user)
        assert user.status == AccountStatus.ACTIVE
        assert user.email_verified is True

    def test_suspended_account_stays_suspended(self, reset_coordinator, auth_db):
        user_id = auth_db.create_user("held@agency.gov", None, status=AccountStatus.SUSPENDED)
        token = reset_coordinator.request_reset("held@agency.gov")

        assert reset_coordinator.reset_password(token, "first_password_1") is True
        assert auth_db.get_user_by_id(user_id).status == AccountStatus.SUSPENDED

    def test_encoder_failure_leaves_token_unused(self, auth_db, active_user, settings, clock):
        encoder = MagicMock()
        encoder.encode.side_effect = RuntimeError("hasher unavailable")
        coordinator = PasswordResetCoordinator(auth_db, encoder, settings, clock=clock)
        token = coordinator.request_reset("analyst@agency.gov")

        with pytest.raises(RuntimeError):
            coordinator.reset_password(token, "brand_new_password")

        assert coordinator.validate_token(token) is True


# ============================================
# Expiry Tests
# ============================================

class TestExpiry:
    """Test time-bounded validity."""

    def test_token_valid_before_expiry(self, reset_coordinator, active_user, clock):
        token = reset_coordinator.request_reset("analyst@agency.gov")
        clock.advance(hours=23, minutes=59)

        assert reset_coordinator.validate_token(token) is True
        assert reset_coordinator.resolve_user(token) == active_user

    def test_token_invalid_after_25_hours(self, reset_coordinator, active_user, clock):
        token = reset_coordinator.request_reset("analyst@agency.gov")
        clock.advance(hours=25)

        assert reset_coordinator.validate_token(token) is False
        assert reset_coordinator.resolve_user(token) is None
        assert reset_coordinator.reset_password(token, "new_password_123") is False

    def test_configurable_expiry(self, auth_db, password_encoder, active_user, clock):
        coordinator = PasswordResetCoordinator(
            auth_db, password_encoder, AuthSettings(reset_token_expiry_hours=1), clock=clock
        )
        token = coordinator.request_reset("analyst@agency.gov")
        clock.advance(minutes=61)

        assert coordinator.validate_token(token) is False

    def test_validate_does_not_consume(self, reset_coordinator, active_user):
        token = reset_coordinator.request_reset("analyst@agency.gov")

        assert reset_coordinator.validate_token(token) is True
        assert reset_coordinator.validate_token(token) is True
        assert reset_coordinator.reset_password(token, "new_password_123") is True


# ============================================
# Purge Tests
# ============================================

class TestPurgeExpired:
    """Test the periodic sweep."""

    def test_purge_removes_only_expired(self, reset_coordinator, auth_db, active_user, pending_user, clock):
        old = reset_coordinator.request_reset("analyst@agency.gov")
        clock.advance(hours=12)
        fresh = reset_coordinator.request_reset("invitee@agency.gov")
        clock.advance(hours=13)

        assert reset_coordinator.purge_expired() == 1

        with auth_db.transaction() as repo:
            assert repo.find_by_hash(hash_token(old)) is None
            assert repo.find_by_hash(hash_token(fresh)) is not None

    def test_purge_removes_used_expired_tokens(self, reset_coordinator, active_user, clock):
        token = reset_coordinator.request_reset("analyst@agency.gov")
        reset_coordinator.reset_password(token, "new_password_123")
        clock.advance(hours=25)

        assert reset_coordinator.purge_expired() == 1

    def test_purge_with_nothing_expired(self, reset_coordinator, active_user):
        reset_coordinator.request_reset("analyst@agency.gov")
        assert reset_coordinator.purge_expired() == 0


# ============================================
# Audit Tests
# ============================================

class TestResetAudit:
    """Test optional audit events."""

    def test_completed_reset_is_audited(self, auth_db, password_encoder, settings, clock, active_user):
        sink = MagicMock()
        coordinator = PasswordResetCoordinator(auth_db, password_encoder, settings, audit_sink=sink, clock=clock)
        token = coordinator.request_reset("analyst@agency.gov")
        coordinator.reset_password(token, "new_password_123")

        actions = [c.args[0] for c in sink.record.call_args_list]
        assert actions == [AuditAction.PASSWORD_RESET_REQUESTED, AuditAction.PASSWORD_RESET_COMPLETED]
        # Token never reaches the audit trail
        for c in sink.record.call_args_list:
            assert token not in c.args[3]

    def test_unknown_email_is_not_audited(self, auth_db, password_encoder, settings, clock):
        sink = MagicMock()
        coordinator = PasswordResetCoordinator(auth_db, password_encoder, settings, audit_sink=sink, clock=clock)

        coordinator.request_reset("nobody@agency.gov")
        sink.record.assert_not_called()

    def test_audit_failure_does_not_block_reset(self, auth_db, password_encoder, settings, clock, active_user):
        sink = MagicMock()
        sink.record.side_effect = RuntimeError("audit store down")
        coordinator = PasswordResetCoordinator(auth_db, password_encoder, settings, audit_sink=sink, clock=clock)

        token = coordinator.request_reset("analyst@agency.gov")
        assert token is not None
        assert coordinator.reset_password(token, "new_password_123") is True
