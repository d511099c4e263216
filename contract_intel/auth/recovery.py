"""
MFA recovery codes.

Codes are generated here; persisting them (hashed) and consuming them once
at login belongs to the caller. The hashing helpers below are what AuthDB
uses when it is asked to store a batch.
"""
import secrets
import string
from typing import List, Optional

import bcrypt

RECOVERY_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_recovery_codes(count: int = 10, length: int = 8) -> List[str]:
    """
    Generate recovery codes for account recovery.

    Each code is drawn independently from a cryptographically secure source
    and is unrelated to the TOTP secret.

    Args:
        count: Number of codes to generate.
        length: Length of each code.

    Returns:
        List of uppercase alphanumeric codes, e.g. "7KQ2M9XA".
    """
    return [
        "".join(secrets.choice(RECOVERY_CODE_ALPHABET) for _ in range(length))
        for _ in range(count)
    ]


def normalize_recovery_code(code: str) -> str:
    """Strip dashes/spaces and upper-case, so "7kq2-m9xa" matches "7KQ2M9XA"."""
    return code.replace("-", "").replace(" ", "").strip().upper()


def hash_recovery_code(code: str) -> str:
    """
    Hash a recovery code for secure storage.

    Returns:
        Bcrypt hash of the normalized code.
    """
    salt = bcrypt.gensalt(rounds=10)  # Slightly lower than password for performance
    return bcrypt.hashpw(normalize_recovery_code(code).encode('utf-8'), salt).decode('utf-8')


def hash_recovery_codes(codes: List[str]) -> List[str]:
    return [hash_recovery_code(code) for code in codes]


def verify_recovery_code(code: str, hashed_code: str) -> bool:
    try:
        return bcrypt.checkpw(
            normalize_recovery_code(code).encode('utf-8'),
            hashed_code.encode('utf-8')
        )
    except ValueError:
        return False


def find_matching_recovery_code(code: str, hashed_codes: List[str]) -> Optional[int]:
    """
    Find the index of a matching recovery code.

    Args:
        code: Plain text code entered by user.
        hashed_codes: Stored bcrypt hashes.

    Returns:
        Index of the matching code, or None if not found.
    """
    if not code:
        return None
    for i, hashed in enumerate(hashed_codes):
        if verify_recovery_code(code, hashed):
            return i
    return None
