"""
Multi-Factor Authentication (MFA) lifecycle for Contract Intelligence.

Per-user state machine:

    DISABLED --begin_setup--> SECRET_PENDING --verify_and_enable--> ENABLED
                              SECRET_PENDING --begin_setup--> SECRET_PENDING
    ENABLED --disable(valid code)--> DISABLED

Disabling requires a currently valid code, so a hijacked session alone
cannot strip MFA from an account.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..config import AuthSettings
from .audit import record_safely
from .errors import (
    InvalidCodeError,
    MfaAlreadyEnabledError,
    MfaNotEnabledError,
    MfaSetupNotStartedError,
    UserNotFoundError,
)
from .interfaces import AuditSink, AuthStore, QrRenderer
from .models import AuditAction, MfaSetup, MfaState, MfaStatus, User, utcnow
from .qr import PngQrRenderer, to_data_uri
from .recovery import generate_recovery_codes
from .totp import TotpProvider

logger = logging.getLogger(__name__)


class MfaCoordinator:
    """
    Manages TOTP secrets and recovery codes for users.

    Example usage:
        mfa = MfaCoordinator(auth_db, DatabaseAuditSink(auth_db))

        setup = mfa.begin_setup(user_id)      # show setup.qr_code_data_uri
        mfa.verify_and_enable(user_id, "123456")
        mfa.verify_code(user_id, "654321")    # at login
    """

    def __init__(
        self,
        store: AuthStore,
        audit_sink: AuditSink,
        settings: Optional[AuthSettings] = None,
        qr_renderer: Optional[QrRenderer] = None,
        totp: Optional[TotpProvider] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.audit_sink = audit_sink
        self.settings = settings or AuthSettings()
        self.qr_renderer = qr_renderer or PngQrRenderer()
        self.totp = totp or TotpProvider(valid_window=self.settings.totp_valid_window)
        self.clock = clock

    def begin_setup(self, user_id: str) -> MfaSetup:
        """
        Generate a new MFA secret for a user. Does not enable MFA yet.

        Calling this again before verification replaces the pending secret.

        Returns:
            MfaSetup with the raw secret (for manual entry), the otpauth URI
            and the QR code image.

        Raises:
            UserNotFoundError: Unknown user.
            MfaAlreadyEnabledError: MFA is already on.
            QrGenerationError: The image could not be rendered; nothing is
                persisted in that case.
        """
        with self.store.transaction() as repo:
            user = self._load(repo, user_id)
            if user.mfa_state == MfaState.ENABLED:
                raise MfaAlreadyEnabledError()

            secret = self.totp.generate_secret()
            user.mfa_secret = secret
            user.mfa_enabled = False
            user.updated_at = self.clock()
            repo.save_user(user)

            uri = self.totp.provisioning_uri(secret, label=user.email, issuer=self.settings.totp_issuer)
            # Rendering inside the transaction: a failure rolls the secret back
            image = self.qr_renderer.render(uri)

        logger.info(f"MFA setup initiated for user {user_id}")
        return MfaSetup(
            secret=secret,
            provisioning_uri=uri,
            qr_code_png=image,
            qr_code_data_uri=to_data_uri(image, self.qr_renderer.mime_type),
        )

    def verify_and_enable(self, user_id: str, code: str) -> bool:
        """
        Verify the first code from the authenticator app and enable MFA.

        Returns:
            True if MFA is now enabled; False if the code was wrong, in which
            case the pending secret is kept so the user can retry.

        Raises:
            UserNotFoundError, MfaAlreadyEnabledError, MfaSetupNotStartedError
        """
        with self.store.transaction() as repo:
            user = self._load(repo, user_id)
            if user.mfa_state == MfaState.ENABLED:
                raise MfaAlreadyEnabledError()
            if user.mfa_state != MfaState.SECRET_PENDING:
                raise MfaSetupNotStartedError()

            if not self.totp.is_valid(user.mfa_secret, code, at=self.clock()):
                logger.info(f"MFA setup verification failed for user {user_id}")
                return False

            user.mfa_enabled = True
            user.updated_at = self.clock()
            repo.save_user(user)
            email = user.email

        logger.info(f"MFA enabled for user {user_id}")
        record_safely(
            self.audit_sink,
            AuditAction.MFA_ENABLED,
            "User",
            user_id,
            f"MFA enabled for user: {email}",
        )
        return True

    def verify_code(self, user_id: str, code: str) -> bool:
        """
        Verify a login-time code. No state change.

        Raises:
            UserNotFoundError, MfaNotEnabledError
        """
        with self.store.transaction() as repo:
            user = self._load(repo, user_id, for_update=False)

        if user.mfa_state != MfaState.ENABLED:
            raise MfaNotEnabledError()

        valid = self.totp.is_valid(user.mfa_secret, code, at=self.clock())
        if not valid:
            logger.info(f"MFA code rejected for user {user_id}")
        return valid

    def disable(self, user_id: str, code: str) -> None:
        """
        Disable MFA and erase the secret.

        Raises:
            UserNotFoundError, MfaNotEnabledError
            InvalidCodeError: The code did not verify; nothing was changed.
        """
        with self.store.transaction() as repo:
            user = self._load(repo, user_id)
            if user.mfa_state != MfaState.ENABLED:
                raise MfaNotEnabledError()

            if not self.totp.is_valid(user.mfa_secret, code, at=self.clock()):
                logger.info(f"MFA disable rejected for user {user_id}: invalid code")
                raise InvalidCodeError()

            user.mfa_enabled = False
            user.mfa_secret = None
            user.updated_at = self.clock()
            repo.save_user(user)
            email = user.email

        logger.info(f"MFA disabled for user {user_id}")
        record_safely(
            self.audit_sink,
            AuditAction.MFA_DISABLED,
            "User",
            user_id,
            f"MFA disabled for user: {email}",
        )

    def is_enabled(self, user_id: str) -> bool:
        """Unknown users report False."""
        return self.get_state(user_id) == MfaState.ENABLED

    def get_state(self, user_id: str) -> MfaState:
        with self.store.transaction() as repo:
            user = repo.find_by_id(user_id)
        if user is None:
            return MfaState.DISABLED
        return user.mfa_state

    def get_status(self, user_id: str) -> MfaStatus:
        """
        State plus the number of unused recovery codes, so callers can warn
        a user who is running out. Unknown users report DISABLED with none.
        """
        with self.store.transaction() as repo:
            user = repo.find_by_id(user_id)
        if user is None:
            return MfaStatus(MfaState.DISABLED)
        return MfaStatus(user.mfa_state, user.recovery_codes_remaining)

    def generate_recovery_codes(self, user_id: str) -> List[str]:
        """
        Generate one-time recovery codes for an MFA-enabled user.

        The caller must hash and persist these (AuthDB.store_recovery_codes)
        and consume each at most once.

        Raises:
            UserNotFoundError, MfaNotEnabledError
        """
        with self.store.transaction() as repo:
            user = self._load(repo, user_id, for_update=False)

        if user.mfa_state != MfaState.ENABLED:
            raise MfaNotEnabledError()

        codes = generate_recovery_codes(
            count=self.settings.recovery_code_count,
            length=self.settings.recovery_code_length,
        )
        logger.info(f"Recovery codes generated for user {user_id}")
        record_safely(
            self.audit_sink,
            AuditAction.RECOVERY_CODES_GENERATED,
            "User",
            user_id,
            f"{len(codes)} recovery codes generated",
        )
        return codes

    def _load(self, repo, user_id: str, for_update: bool = True) -> User:
        user = repo.find_by_id(user_id, for_update=for_update)
        if user is None:
            raise UserNotFoundError(user_id)
        return user
