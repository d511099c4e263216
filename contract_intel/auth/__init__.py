"""
Authentication core for Contract Intelligence.

This package provides:
- Password reset tokens (issue, validate, redeem, purge)
- TOTP multi-factor authentication (setup, verify, disable)
- MFA recovery code generation
"""
from .errors import (
    AuthError,
    NotFoundError,
    UserNotFoundError,
    InvalidStateError,
    MfaAlreadyEnabledError,
    MfaSetupNotStartedError,
    MfaNotEnabledError,
    InvalidCredentialError,
    InvalidCodeError,
    DependencyFailureError,
    QrGenerationError,
    SecretDecryptionError,
)
from .models import AccountStatus, AuditAction, MfaSetup, MfaState, MfaStatus, ResetToken, User
from .mfa import MfaCoordinator
from .password_reset import PasswordResetCoordinator
from .passwords import BcryptPasswordEncoder
from .audit import LoggingAuditSink
from .qr import PngQrRenderer
from .totp import TotpProvider

__all__ = [
    "AuthError",
    "NotFoundError",
    "UserNotFoundError",
    "InvalidStateError",
    "MfaAlreadyEnabledError",
    "MfaSetupNotStartedError",
    "MfaNotEnabledError",
    "InvalidCredentialError",
    "InvalidCodeError",
    "DependencyFailureError",
    "QrGenerationError",
    "SecretDecryptionError",
    "AccountStatus",
    "AuditAction",
    "MfaSetup",
    "MfaState",
    "MfaStatus",
    "ResetToken",
    "User",
    "MfaCoordinator",
    "PasswordResetCoordinator",
    "BcryptPasswordEncoder",
    "LoggingAuditSink",
    "PngQrRenderer",
    "TotpProvider",
]
