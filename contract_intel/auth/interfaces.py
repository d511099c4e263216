"""
Collaborator contracts consumed by the coordinators.

The coordinators never talk to a database, mailer or image library
directly; they are handed implementations of these interfaces.
"""
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Optional

from .models import AuditAction, ResetToken, User


class UserDirectory(ABC):
    """User lookup and update."""

    @abstractmethod
    def find_by_id(self, user_id: str, for_update: bool = False) -> Optional[User]:
        """Return the user or None. for_update locks the row until commit."""

    @abstractmethod
    def find_by_email(self, email: str, for_update: bool = False) -> Optional[User]:
        """Return the user with this (already normalized) e-mail, or None."""

    @abstractmethod
    def save_user(self, user: User) -> None:
        pass


class TokenStore(ABC):
    """Persistence for password reset token records."""

    @abstractmethod
    def delete_all_for_user(self, user_id: str) -> int:
        pass

    @abstractmethod
    def save_token(self, token: ResetToken) -> None:
        pass

    @abstractmethod
    def find_by_hash(self, token_hash: str, for_update: bool = False) -> Optional[ResetToken]:
        pass

    @abstractmethod
    def delete_expired_before(self, cutoff: datetime) -> int:
        """Delete every record with expires_at < cutoff, used or not."""


class AuthRepository(UserDirectory, TokenStore):
    """User and token access bound to a single transaction."""


class AuthStore(ABC):
    """Unit-of-work factory over user and token storage."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """
        Open an atomic unit of work.

        Usage:
            with store.transaction() as repo:
                user = repo.find_by_id(user_id, for_update=True)
                ...

        Everything done through repo commits together when the block exits
        normally and is rolled back if it raises.
        """


class PasswordEncoder(ABC):
    """One-way password credential encoding."""

    @abstractmethod
    def encode(self, plaintext: str) -> str:
        pass

    @abstractmethod
    def matches(self, plaintext: str, encoded: str) -> bool:
        pass


class AuditSink(ABC):
    """Destination for security audit events."""

    @abstractmethod
    def record(
        self,
        action: AuditAction,
        subject_type: str,
        subject_id: str,
        message: str,
    ) -> None:
        pass


class QrRenderer(ABC):
    """Renders a provisioning URI as an image."""

    mime_type = "image/png"

    @abstractmethod
    def render(self, uri: str) -> bytes:
        """
        Raises:
            QrGenerationError: If the image cannot be produced.
        """
