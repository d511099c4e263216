"""
Pytest configuration and shared fixtures for the authentication core tests.

This module provides common test fixtures for:
- In-memory SQLite AuthDB
- A controllable clock
- Coordinators wired to test collaborators
"""
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from contract_intel.auth import (
    AccountStatus,
    BcryptPasswordEncoder,
    MfaCoordinator,
    PasswordResetCoordinator,
    TotpProvider,
)
from contract_intel.config import AuthSettings
from contract_intel.database.auth_db import AuthDB


# Start of a 30-second TOTP step
T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================
# Infrastructure Fixtures
# ============================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return AuthSettings()


@pytest.fixture
def auth_db():
    """
    Provide a fresh in-memory database with the schema created.
    """
    db = AuthDB("sqlite://")
    db.init_schema()
    yield db
    db.engine.dispose()


@pytest.fixture
def password_encoder():
    # Minimum bcrypt cost keeps the suite fast
    return BcryptPasswordEncoder(rounds=4)


@pytest.fixture
def audit_sink():
    return MagicMock()


@pytest.fixture
def totp():
    return TotpProvider(valid_window=1)


# ============================================
# User Fixtures
# ============================================

@pytest.fixture
def active_user(auth_db, password_encoder):
    """Create an active user and return their id."""
    return auth_db.create_user(
        "Analyst@Agency.gov",
        password_encoder.encode("original_password_1"),
        status=AccountStatus.ACTIVE,
        email_verified=True,
    )


@pytest.fixture
def pending_user(auth_db):
    """Create an invited user who has not set a password yet."""
    return auth_db.create_user("invitee@agency.gov", None, status=AccountStatus.PENDING)


# ============================================
# Coordinator Fixtures
# ============================================

@pytest.fixture
def reset_coordinator(auth_db, password_encoder, settings, clock):
    return PasswordResetCoordinator(auth_db, password_encoder, settings, clock=clock)


@pytest.fixture
def mfa_coordinator(auth_db, audit_sink, settings, totp, clock):
    return MfaCoordinator(auth_db, audit_sink, settings, totp=totp, clock=clock)


@pytest.fixture
def enabled_mfa_user(active_user, mfa_coordinator, totp, clock):
    """Active user with MFA fully enabled; returns (user_id, secret)."""
    setup = mfa_coordinator.begin_setup(active_user)
    assert mfa_coordinator.verify_and_enable(active_user, totp.current_code(setup.secret, clock()))
    return active_user, setup.secret
