"""
Exceptions raised by the authentication core.

Wrong codes and bad reset tokens are NOT exceptions: coordinators return
False/None for those. Exceptions are reserved for flow violations
(InvalidStateError), missing records (NotFoundError), the disable-MFA proof
of possession (InvalidCodeError) and collaborator failures
(DependencyFailureError).
"""


class AuthError(Exception):
    """Base class for authentication core errors."""


class NotFoundError(AuthError):
    """A referenced record does not exist."""


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class InvalidStateError(AuthError):
    """The operation is not allowed in the current MFA state."""


class MfaAlreadyEnabledError(InvalidStateError):
    def __init__(self):
        super().__init__("MFA is already enabled for this user")


class MfaSetupNotStartedError(InvalidStateError):
    def __init__(self):
        super().__init__("MFA secret not generated. Please start setup first.")


class MfaNotEnabledError(InvalidStateError):
    def __init__(self):
        super().__init__("MFA is not enabled for this user")


class InvalidCredentialError(AuthError):
    """A submitted credential did not verify."""


class InvalidCodeError(InvalidCredentialError):
    def __init__(self):
        super().__init__("Invalid MFA code")


class DependencyFailureError(AuthError):
    """A collaborator failed; the operation was aborted and rolled back."""


class QrGenerationError(DependencyFailureError):
    """The provisioning QR image could not be rendered."""


class SecretDecryptionError(DependencyFailureError):
    """A stored secret could not be decrypted with the configured key."""
