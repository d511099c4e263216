"""
Configuration for the authentication core.

All values come from environment variables (or Docker secret files for
sensitive values) and have production-safe defaults.
"""
import os
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .utils.secrets import get_secret

DEFAULT_TOTP_ISSUER = "SAM.gov Contract Intelligence"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class AuthSettings:
    """Tunable parameters for password reset and MFA."""
    reset_token_expiry_hours: int = 24
    password_min_length: int = 8
    totp_issuer: str = DEFAULT_TOTP_ISSUER
    totp_valid_window: int = 1  # accepted steps either side of the current one
    recovery_code_count: int = 10
    recovery_code_length: int = 8
    mfa_secret_encryption_key: Optional[str] = None

    def __post_init__(self):
        if self.reset_token_expiry_hours <= 0:
            raise ValueError("reset_token_expiry_hours must be positive")
        if self.totp_valid_window < 0:
            raise ValueError("totp_valid_window must not be negative")
        if self.recovery_code_count <= 0 or self.recovery_code_length <= 0:
            raise ValueError("recovery code count and length must be positive")

    @property
    def reset_token_ttl(self) -> timedelta:
        return timedelta(hours=self.reset_token_expiry_hours)

    @classmethod
    def from_env(cls) -> "AuthSettings":
        """
        Build settings from the environment.

        Variables:
            RESET_TOKEN_EXPIRY_HOURS, PASSWORD_MIN_LENGTH, TOTP_ISSUER,
            TOTP_VALID_WINDOW, RECOVERY_CODE_COUNT, RECOVERY_CODE_LENGTH,
            MFA_SECRET_ENCRYPTION_KEY (or MFA_SECRET_ENCRYPTION_KEY_FILE)
        """
        return cls(
            reset_token_expiry_hours=_env_int("RESET_TOKEN_EXPIRY_HOURS", 24),
            password_min_length=_env_int("PASSWORD_MIN_LENGTH", 8),
            totp_issuer=os.getenv("TOTP_ISSUER", DEFAULT_TOTP_ISSUER),
            totp_valid_window=_env_int("TOTP_VALID_WINDOW", 1),
            recovery_code_count=_env_int("RECOVERY_CODE_COUNT", 10),
            recovery_code_length=_env_int("RECOVERY_CODE_LENGTH", 8),
            mfa_secret_encryption_key=get_secret("MFA_SECRET_ENCRYPTION_KEY"),
        )


def build_database_url() -> str:
    """Build the PostgreSQL URL from POSTGRES_* variables."""
    url = os.getenv("AUTH_DATABASE_URL")
    if url:
        return url

    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT", "5432")
    db = os.getenv("POSTGRES_DB", "contract_intel")
    user = os.getenv("POSTGRES_USER", "contract_intel_user")
    password = get_secret("POSTGRES_PASSWORD", "")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from LOG_LEVEL / LOG_FORMAT."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_format = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=log_format,
    )
