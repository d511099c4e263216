"""
Password credential encoding.
"""
import bcrypt

from .interfaces import PasswordEncoder


class BcryptPasswordEncoder(PasswordEncoder):
    """bcrypt-backed PasswordEncoder."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def encode(self, plaintext: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            plaintext: Plain text password.

        Returns:
            Bcrypt hash string.
        """
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(plaintext.encode('utf-8'), salt).decode('utf-8')

    def matches(self, plaintext: str, encoded: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise (including for a
            malformed stored hash).
        """
        if not plaintext or not encoded:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode('utf-8'), encoded.encode('utf-8'))
        except ValueError:
            return False
