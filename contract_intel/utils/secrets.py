"""
Secret lookup and log masking for Contract Intelligence.

Sensitive settings (database password, MFA encryption key) are read from
a mounted file when NAME_FILE is set, otherwise from the NAME variable.
Values are read on every call and never cached in process.
"""
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def get_secret(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Resolve a secret setting.

    Args:
        name: Variable name, e.g. "MFA_SECRET_ENCRYPTION_KEY".
        default: Returned when neither source is set.

    Returns:
        Contents of the file named by {name}_FILE (stripped), else the
        {name} environment variable, else default.
    """
    file_path = os.environ.get(f"{name}_FILE")
    if file_path:
        try:
            with open(file_path, 'r') as f:
                return f.read().strip()
        except OSError as e:
            logger.warning(f"{name}_FILE is set but unreadable ({e}); falling back to {name}")

    return os.environ.get(name) or default


def mask_secret(secret: str, visible_chars: int = 4) -> str:
    """
    Mask a secret for safe logging.

    Returns:
        Masked string like "abc...xyz"
    """
    if not secret or len(secret) <= visible_chars * 2:
        return "***"
    return f"{secret[:visible_chars]}...{secret[-visible_chars:]}"


def mask_email(email: str) -> str:
    """Mask the local part of an e-mail address, e.g. "j***@agency.gov"."""
    if not email or "@" not in email:
        return mask_secret(email)
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"
