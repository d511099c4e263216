"""
Plain data records used by the authentication core.

These are storage-agnostic; AuthDB maps them to and from its ORM rows.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountStatus(str, Enum):
    PENDING = "pending"  # invited, has not set a password yet
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class MfaState(str, Enum):
    DISABLED = "disabled"
    SECRET_PENDING = "secret_pending"
    ENABLED = "enabled"


class AuditAction(str, Enum):
    MFA_ENABLED = "MFA_ENABLED"
    MFA_DISABLED = "MFA_DISABLED"
    RECOVERY_CODES_GENERATED = "RECOVERY_CODES_GENERATED"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"


@dataclass
class User:
    """User record as seen by the authentication core."""
    user_id: str
    email: str
    password_hash: Optional[str] = None
    status: AccountStatus = AccountStatus.ACTIVE
    email_verified: bool = False
    mfa_enabled: bool = False
    mfa_secret: Optional[str] = None
    password_changed_at: Optional[datetime] = None
    tenant_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    # Read-only; maintained by the recovery code store
    recovery_codes_remaining: int = 0

    @property
    def mfa_state(self) -> MfaState:
        if self.mfa_enabled and self.mfa_secret:
            return MfaState.ENABLED
        if self.mfa_secret:
            return MfaState.SECRET_PENDING
        return MfaState.DISABLED


@dataclass
class ResetToken:
    """
    Persisted half of a password reset token.

    Only the SHA-256 hash of the token is stored; the plaintext exists
    solely in the return value of request_reset.
    """
    token_hash: str
    user_id: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())

    @property
    def is_used(self) -> bool:
        return self.used_at is not None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return not self.is_expired(now) and not self.is_used


@dataclass
class MfaSetup:
    """Result of starting MFA enrollment."""
    secret: str
    provisioning_uri: str
    qr_code_png: bytes
    qr_code_data_uri: str


@dataclass
class MfaStatus:
    """MFA summary for account settings screens."""
    state: MfaState
    remaining_recovery_codes: int = 0

    @property
    def enabled(self) -> bool:
        return self.state == MfaState.ENABLED
