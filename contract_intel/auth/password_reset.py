"""
Password reset token issuance and redemption.

Security properties:
- Tokens carry 256 bits of entropy and are URL-safe.
- Only the SHA-256 hash of a token is stored, so a leaked token table
  cannot be used to reset anyone's password.
- Requesting a new token deletes every earlier token of that user.
- A token is accepted once, before it expires.
- request_reset returns None for unknown addresses; the caller must answer
  exactly as it does for known ones.
"""
import hashlib
import hmac
import logging
import secrets
from datetime import datetime
from typing import Callable, Optional

from ..config import AuthSettings
from ..utils.secrets import mask_email
from .audit import record_safely
from .interfaces import AuditSink, AuthStore, PasswordEncoder
from .models import AccountStatus, AuditAction, ResetToken, utcnow

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a plaintext reset token."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


class PasswordResetCoordinator:
    """
    Issues, validates and redeems single-use password reset tokens.

    Example usage:
        resets = PasswordResetCoordinator(auth_db, BcryptPasswordEncoder())

        token = resets.request_reset("user@agency.gov")
        if token:
            send_reset_email(...)          # caller's job
        # respond identically whether or not token is None

        resets.reset_password(token, "new-secret-password")
    """

    def __init__(
        self,
        store: AuthStore,
        password_encoder: PasswordEncoder,
        settings: Optional[AuthSettings] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.password_encoder = password_encoder
        self.settings = settings or AuthSettings()
        self.audit_sink = audit_sink
        self.clock = clock

    def request_reset(self, email: str) -> Optional[str]:
        """
        Issue a reset token for the account registered under `email`.

        Args:
            email: Address as typed by the user (case-insensitive).

        Returns:
            The plaintext token to deliver out-of-band, or None if no account
            uses this address.
        """
        email = (email or "").strip().lower()
        if not email:
            return None

        now = self.clock()
        token = generate_token()

        with self.store.transaction() as repo:
            # Row lock serializes concurrent requests for the same account
            user = repo.find_by_email(email, for_update=True)
            if user is None:
                logger.debug(f"Password reset requested for unknown address {mask_email(email)}")
                return None

            removed = repo.delete_all_for_user(user.user_id)
            repo.save_token(ResetToken(
                token_hash=hash_token(token),
                user_id=user.user_id,
                expires_at=now + self.settings.reset_token_ttl,
                created_at=now,
            ))
            user_id = user.user_id

        logger.info(f"Password reset token issued for user {user_id} (replaced {removed})")
        record_safely(
            self.audit_sink,
            AuditAction.PASSWORD_RESET_REQUESTED,
            "User",
            user_id,
            "Password reset requested",
        )
        return token

    def reset_password(self, token: str, new_password: str) -> bool:
        """
        Redeem a token and set a new password.

        Pending (invited) accounts are activated and their e-mail marked
        verified, since receiving the token proves control of the inbox.

        Args:
            token: Plaintext token from the reset link.
            new_password: New password in plain text.

        Returns:
            True if the password was changed, False if the token is unknown,
            expired or already used.

        Raises:
            ValueError: If new_password is shorter than the configured minimum.
        """
        if new_password is None or len(new_password) < self.settings.password_min_length:
            raise ValueError(
                f"Password must be at least {self.settings.password_min_length} characters"
            )
        if not token or not token.strip():
            return False

        token_hash = hash_token(token.strip())
        now = self.clock()

        with self.store.transaction() as repo:
            record = repo.find_by_hash(token_hash, for_update=True)
            if record is None or not hmac.compare_digest(record.token_hash, token_hash):
                logger.debug("Password reset attempted with unknown token")
                return False
            if not record.is_valid(now):
                logger.info(
                    f"Password reset rejected for user {record.user_id}: "
                    f"{'used' if record.is_used else 'expired'} token"
                )
                return False

            user = repo.find_by_id(record.user_id, for_update=True)
            if user is None:
                logger.warning(f"Reset token references missing user {record.user_id}")
                return False

            user.password_hash = self.password_encoder.encode(new_password)
            user.password_changed_at = now
            user.updated_at = now
            if user.status == AccountStatus.PENDING:
                user.status = AccountStatus.ACTIVE
                user.email_verified = True
                logger.info(f"Activated pending account {user.user_id} via password reset")
            repo.save_user(user)

            record.used_at = now
            repo.save_token(record)
            user_id = user.user_id

        logger.info(f"Password reset completed for user {user_id}")
        record_safely(
            self.audit_sink,
            AuditAction.PASSWORD_RESET_COMPLETED,
            "User",
            user_id,
            "Password changed via reset token",
        )
        return True

    def validate_token(self, token: str) -> bool:
        """Read-only check used to decide whether to show the reset form."""
        return self._find_valid(token) is not None

    def resolve_user(self, token: str) -> Optional[str]:
        """
        Returns:
            The user id owning a still-valid token, or None.
        """
        record = self._find_valid(token)
        return record.user_id if record else None

    def purge_expired(self) -> int:
        """
        Delete every token record whose expiration has passed, used or not.

        Returns:
            Number of records deleted.
        """
        now = self.clock()
        with self.store.transaction() as repo:
            deleted = repo.delete_expired_before(now)
        logger.info(f"Purged {deleted} expired password reset tokens")
        return deleted

    def _find_valid(self, token: str) -> Optional[ResetToken]:
        if not token or not token.strip():
            return None

        token_hash = hash_token(token.strip())
        with self.store.transaction() as repo:
            record = repo.find_by_hash(token_hash)

        if record is None or not hmac.compare_digest(record.token_hash, token_hash):
            return None
        if not record.is_valid(self.clock()):
            return None
        return record
