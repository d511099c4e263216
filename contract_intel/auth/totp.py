"""
TOTP (Time-based One-Time Password) capability, RFC 6238.

Compatible with Google Authenticator, Authy, Microsoft Authenticator and
other TOTP apps: HMAC-SHA1, 6 digits, 30-second step, base32 secret.
"""
import hashlib
from datetime import datetime
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

import pyotp

from .models import utcnow

TOTP_DIGITS = 6
TOTP_INTERVAL_SECONDS = 30
TOTP_DIGEST = hashlib.sha1


class TotpProvider:
    """
    Narrow TOTP interface used by MfaCoordinator.

    Example usage:
        totp = TotpProvider()
        secret = totp.generate_secret()
        code = totp.current_code(secret)
        assert totp.is_valid(secret, code)
    """

    def __init__(self, valid_window: int = 1):
        """
        Args:
            valid_window: Number of 30-second steps accepted on each side of
                the current one (default 1 = +-30s).
        """
        self.valid_window = valid_window

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(
            secret,
            digits=TOTP_DIGITS,
            digest=TOTP_DIGEST,
            interval=TOTP_INTERVAL_SECONDS,
        )

    def generate_secret(self) -> str:
        """
        Generate a new shared secret.

        Returns:
            Base32-encoded secret (32 characters, 160 bits).
        """
        return pyotp.random_base32()

    def current_code(self, secret: str, at: Optional[datetime] = None) -> str:
        """Code for the step containing `at` (default: now)."""
        return self._totp(secret).at(at or utcnow())

    def is_valid(
        self,
        secret: str,
        code: str,
        at: Optional[datetime] = None,
        window: Optional[int] = None,
    ) -> bool:
        """
        Verify a TOTP code against the secret.

        Args:
            secret: Base32-encoded TOTP secret.
            code: Code entered by user; surrounding whitespace and inner
                spaces are ignored.
            at: Verification time (default: now).
            window: Override of the configured step tolerance.

        Returns:
            True if code is valid, False otherwise.
        """
        if not secret or not code:
            return False

        code = code.strip().replace(" ", "")
        if len(code) != TOTP_DIGITS or not (code.isascii() and code.isdigit()):
            return False

        if window is None:
            window = self.valid_window

        # pyotp compares with hmac.compare_digest
        return self._totp(secret).verify(code, for_time=at or utcnow(), valid_window=window)

    def provisioning_uri(self, secret: str, label: str, issuer: str) -> str:
        """
        Build the otpauth:// URI for authenticator apps.

        pyotp leaves out parameters equal to its defaults; algorithm, digits
        and period are always written so every app provisions the same
        SHA-1, 6 digit, 30 second token.
        """
        uri = self._totp(secret).provisioning_uri(name=label, issuer_name=issuer)
        query = parse_qs(urlparse(uri).query)
        explicit = {
            "algorithm": "SHA1",
            "digits": str(TOTP_DIGITS),
            "period": str(TOTP_INTERVAL_SECONDS),
        }
        missing = {key: value for key, value in explicit.items() if key not in query}
        if missing:
            uri = f"{uri}&{urlencode(missing)}"
        return uri
