"""
Database connection managers for Contract Intelligence.

This package provides:
- auth_db: SQLAlchemy storage for users, reset tokens and audit events
"""
from .auth_db import AuthDB, DatabaseAuditSink, SqlAuthRepository, get_auth_db

__all__ = ["AuthDB", "DatabaseAuditSink", "SqlAuthRepository", "get_auth_db"]
