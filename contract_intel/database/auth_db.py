"""
Database manager for authentication records.

This module provides connection management and storage for:
- User credentials and MFA state
- Password reset token hashes
- MFA recovery code hashes
- Security audit events

SECURITY NOTE: reset tokens are stored only as SHA-256 hashes and recovery
codes only as bcrypt hashes. TOTP secrets are stored Fernet-encrypted when
MFA_SECRET_ENCRYPTION_KEY is configured.
"""
import json
import uuid
import logging
from typing import Optional, List
from datetime import datetime, timezone
from contextlib import contextmanager

from sqlalchemy import create_engine, Column, String, Text, DateTime, Boolean, Integer, ForeignKey, Index
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool, StaticPool

from ..auth.interfaces import AuditSink, AuthRepository, AuthStore
from ..auth.models import AccountStatus, AuditAction, ResetToken, User, utcnow
from ..auth.recovery import find_matching_recovery_code, hash_recovery_codes
from ..config import AuthSettings, build_database_url
from ..utils.crypto import SecretCipher
from ..utils.secrets import mask_email

logger = logging.getLogger(__name__)

Base = declarative_base()


# =============================================================================
# DATABASE MODELS
# =============================================================================

class UserRecord(Base):
    """User account with credential and MFA columns."""
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True)
    tenant_id = Column(String(36), nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=AccountStatus.ACTIVE.value)
    email_verified = Column(Boolean, nullable=False, default=False)

    mfa_enabled = Column(Boolean, nullable=False, default=False)
    totp_secret = Column(Text, nullable=True)  # encrypted when a key is configured
    recovery_codes = Column(Text, nullable=True)  # JSON list of bcrypt hashes

    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class PasswordResetTokenRecord(Base):
    """Hash of an issued password reset token."""
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token_hash = Column(String(64), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_reset_tokens_expires', 'expires_at'),
    )


class AuditLogRecord(Base):
    """Security audit event."""
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# REPOSITORY (one per transaction)
# =============================================================================

class SqlAuthRepository(AuthRepository):
    """UserDirectory + TokenStore over a single SQLAlchemy session."""

    def __init__(self, session, cipher: Optional[SecretCipher] = None):
        self.session = session
        self.cipher = cipher

    # ---- users ----

    def find_by_id(self, user_id: str, for_update: bool = False) -> Optional[User]:
        query = self.session.query(UserRecord).filter(UserRecord.user_id == user_id)
        if for_update:
            query = query.with_for_update()
        return self._to_user(query.first())

    def find_by_email(self, email: str, for_update: bool = False) -> Optional[User]:
        query = self.session.query(UserRecord).filter(UserRecord.email == email.lower().strip())
        if for_update:
            query = query.with_for_update()
        return self._to_user(query.first())

    def save_user(self, user: User) -> None:
        row = self.session.get(UserRecord, user.user_id)
        if row is None:
            row = UserRecord(user_id=user.user_id, created_at=user.created_at)
            self.session.add(row)

        row.tenant_id = user.tenant_id
        row.email = user.email.lower().strip()
        row.password_hash = user.password_hash
        row.status = user.status.value
        row.email_verified = user.email_verified
        row.mfa_enabled = user.mfa_enabled
        row.totp_secret = self._encrypt(user.mfa_secret)
        row.password_changed_at = user.password_changed_at
        row.updated_at = user.updated_at
        if not user.mfa_enabled and user.mfa_secret is None:
            row.recovery_codes = None
        self.session.flush()

    # ---- reset tokens ----

    def delete_all_for_user(self, user_id: str) -> int:
        return self.session.query(PasswordResetTokenRecord).filter(
            PasswordResetTokenRecord.user_id == user_id
        ).delete(synchronize_session=False)

    def save_token(self, token: ResetToken) -> None:
        row = self.session.query(PasswordResetTokenRecord).filter(
            PasswordResetTokenRecord.token_hash == token.token_hash
        ).first()
        if row is None:
            row = PasswordResetTokenRecord(token_hash=token.token_hash, created_at=token.created_at)
            self.session.add(row)

        row.user_id = token.user_id
        row.expires_at = token.expires_at
        row.used_at = token.used_at
        self.session.flush()

    def find_by_hash(self, token_hash: str, for_update: bool = False) -> Optional[ResetToken]:
        query = self.session.query(PasswordResetTokenRecord).filter(
            PasswordResetTokenRecord.token_hash == token_hash
        )
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            return None
        return ResetToken(
            token_hash=row.token_hash,
            user_id=row.user_id,
            expires_at=_as_utc(row.expires_at),
            used_at=_as_utc(row.used_at),
            created_at=_as_utc(row.created_at),
        )

    def delete_expired_before(self, cutoff: datetime) -> int:
        return self.session.query(PasswordResetTokenRecord).filter(
            PasswordResetTokenRecord.expires_at < cutoff
        ).delete(synchronize_session=False)

    # ---- mapping ----

    def _to_user(self, row: Optional[UserRecord]) -> Optional[User]:
        if row is None:
            return None
        return User(
            user_id=row.user_id,
            email=row.email,
            password_hash=row.password_hash,
            status=AccountStatus(row.status),
            email_verified=bool(row.email_verified),
            mfa_enabled=bool(row.mfa_enabled),
            mfa_secret=self._decrypt(row.totp_secret),
            password_changed_at=_as_utc(row.password_changed_at),
            tenant_id=row.tenant_id,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            recovery_codes_remaining=len(json.loads(row.recovery_codes)) if row.recovery_codes else 0,
        )

    def _encrypt(self, secret: Optional[str]) -> Optional[str]:
        if self.cipher is None:
            return secret
        return self.cipher.encrypt(secret)

    def _decrypt(self, stored: Optional[str]) -> Optional[str]:
        if self.cipher is None:
            return stored
        return self.cipher.decrypt(stored)


# =============================================================================
# AUTH DB
# =============================================================================

class AuthDB(AuthStore):
    """
    SQLAlchemy-backed store for the authentication core.

    PostgreSQL in production; any SQLAlchemy URL works (tests use in-memory
    SQLite).

    Example usage:
        auth_db = AuthDB()
        auth_db.init_schema()

        user_id = auth_db.create_user("user@agency.gov", password_hash)

        with auth_db.transaction() as repo:
            user = repo.find_by_id(user_id, for_update=True)
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        cipher: Optional[SecretCipher] = None,
    ):
        """
        Initialize database connection.

        Args:
            connection_string: SQLAlchemy URL. Built from POSTGRES_*
                environment variables if not provided.
            cipher: Encrypts TOTP secrets at rest when given.
        """
        if connection_string is None:
            connection_string = build_database_url()

        if connection_string in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise each session sees an empty database
            self.engine = create_engine(
                connection_string,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif connection_string.startswith("sqlite"):
            self.engine = create_engine(connection_string)
        else:
            self.engine = create_engine(
                connection_string,
                poolclass=QueuePool,
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_pre_ping=True,  # Test connections before use (detect stale)
                pool_recycle=300,    # Recycle connections every 5 minutes
            )
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.cipher = cipher

    @classmethod
    def from_settings(cls, settings: AuthSettings, connection_string: Optional[str] = None) -> "AuthDB":
        cipher = None
        if settings.mfa_secret_encryption_key:
            cipher = SecretCipher(settings.mfa_secret_encryption_key)
        return cls(connection_string, cipher=cipher)

    @contextmanager
    def get_session(self):
        """
        Get a database session with automatic cleanup.

        Usage:
            with auth_db.get_session() as session:
                result = session.execute(query)
        """
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(self):
        with self.get_session() as session:
            yield SqlAuthRepository(session, self.cipher)

    def init_schema(self) -> None:
        """
        Initialize database schema (create tables if not exist).

        Call this once during application setup.
        """
        Base.metadata.create_all(self.engine)
        logger.info("Auth database schema initialized")

    # ==========================================
    # User Management
    # ==========================================

    def create_user(
        self,
        email: str,
        password_hash: Optional[str] = None,
        status: AccountStatus = AccountStatus.ACTIVE,
        tenant_id: Optional[str] = None,
        email_verified: bool = False,
    ) -> str:
        """
        Create a new user account.

        Returns:
            UUID of created user.

        Raises:
            ValueError: If email already exists.
        """
        user_id = str(uuid.uuid4())
        email = email.lower().strip()

        with self.transaction() as repo:
            if repo.find_by_email(email) is not None:
                raise ValueError(f"User with email '{email}' already exists")
            repo.save_user(User(
                user_id=user_id,
                email=email,
                password_hash=password_hash,
                status=status,
                tenant_id=tenant_id,
                email_verified=email_verified,
            ))

        logger.info(f"Created user: {mask_email(email)} (id={user_id})")
        return user_id

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        with self.transaction() as repo:
            return repo.find_by_id(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self.transaction() as repo:
            return repo.find_by_email(email)

    # ==========================================
    # Recovery Codes
    # ==========================================

    def store_recovery_codes(self, user_id: str, codes: List[str]) -> None:
        """
        Hash and store MFA recovery codes, replacing any previous batch.

        Args:
            user_id: UUID of user.
            codes: Plain text codes as returned by
                MfaCoordinator.generate_recovery_codes.
        """
        codes_json = json.dumps(hash_recovery_codes(codes))
        with self.get_session() as session:
            row = session.query(UserRecord).filter(UserRecord.user_id == user_id).with_for_update().first()
            if row is None:
                raise ValueError(f"User not found: {user_id}")
            row.recovery_codes = codes_json
            row.updated_at = utcnow()
        logger.info(f"Stored {len(codes)} recovery codes for user {user_id}")

    def get_recovery_codes(self, user_id: str) -> List[str]:
        """
        Returns:
            List of hashed recovery codes (empty if none).
        """
        with self.get_session() as session:
            row = session.query(UserRecord.recovery_codes).filter(
                UserRecord.user_id == user_id
            ).first()

            if not row or not row[0]:
                return []
            return json.loads(row[0])

    def consume_recovery_code(self, user_id: str, code: str) -> bool:
        """
        Check a recovery code and remove it so it cannot be used again.

        Returns:
            True if the code matched an unused stored code.
        """
        with self.get_session() as session:
            row = session.query(UserRecord).filter(UserRecord.user_id == user_id).with_for_update().first()
            if row is None or not row.recovery_codes:
                return False

            codes = json.loads(row.recovery_codes)
            index = find_matching_recovery_code(code, codes)
            if index is None:
                return False

            codes.pop(index)
            row.recovery_codes = json.dumps(codes) if codes else None
            row.updated_at = utcnow()
            remaining = len(codes)

        logger.info(f"Recovery code used for user {user_id}, {remaining} remaining")
        return True

    # ==========================================
    # Reset Token Maintenance
    # ==========================================

    def count_expired_reset_tokens(self, cutoff: Optional[datetime] = None) -> int:
        cutoff = cutoff or utcnow()
        with self.get_session() as session:
            return session.query(PasswordResetTokenRecord).filter(
                PasswordResetTokenRecord.expires_at < cutoff
            ).count()

    # ==========================================
    # Audit Log
    # ==========================================

    def record_audit_event(self, action: AuditAction, entity_type: str, entity_id: str, message: str) -> None:
        with self.get_session() as session:
            session.add(AuditLogRecord(
                action=action.value,
                entity_type=entity_type,
                entity_id=str(entity_id),
                message=message,
                created_at=utcnow(),
            ))

    def get_audit_events(self, entity_type: str, entity_id: str) -> List[dict]:
        with self.get_session() as session:
            rows = session.query(AuditLogRecord).filter(
                AuditLogRecord.entity_type == entity_type,
                AuditLogRecord.entity_id == str(entity_id),
            ).order_by(AuditLogRecord.id).all()

            return [
                {
                    "action": row.action,
                    "entity_type": row.entity_type,
                    "entity_id": row.entity_id,
                    "message": row.message,
                    "created_at": _as_utc(row.created_at),
                }
                for row in rows
            ]


class DatabaseAuditSink(AuditSink):
    """Writes audit events to the audit_log table in their own transaction."""

    def __init__(self, auth_db: AuthDB):
        self.auth_db = auth_db

    def record(self, action: AuditAction, subject_type: str, subject_id: str, message: str) -> None:
        self.auth_db.record_audit_event(action, subject_type, subject_id, message)


# Singleton instance
_auth_db_instance: Optional[AuthDB] = None


def get_auth_db() -> AuthDB:
    """
    Get singleton AuthDB instance configured from the environment.
    """
    global _auth_db_instance
    if _auth_db_instance is None:
        _auth_db_instance = AuthDB.from_settings(AuthSettings.from_env())
    return _auth_db_instance
