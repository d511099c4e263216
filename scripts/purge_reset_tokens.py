#!/usr/bin/env python3
"""
Delete expired password reset tokens.

Meant to run daily from cron or a scheduler, e.g.:

    0 2 * * *  python scripts/purge_reset_tokens.py

Usage:
    python scripts/purge_reset_tokens.py              # Delete expired tokens
    python scripts/purge_reset_tokens.py --dry-run    # Only count them
    python scripts/purge_reset_tokens.py --verbose    # Verbose logging
"""
import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from contract_intel.auth import BcryptPasswordEncoder, PasswordResetCoordinator
from contract_intel.config import AuthSettings, configure_logging
from contract_intel.database.auth_db import AuthDB

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Purge expired password reset tokens")
    parser.add_argument("--dry-run", action="store_true", help="Count expired tokens without deleting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--database-url", default=None, help="Override the database URL")
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else None)

    settings = AuthSettings.from_env()
    auth_db = AuthDB.from_settings(settings, args.database_url)

    if args.dry_run:
        count = auth_db.count_expired_reset_tokens()
        logger.info(f"Dry run: {count} expired reset tokens would be deleted")
        return count

    coordinator = PasswordResetCoordinator(auth_db, BcryptPasswordEncoder(), settings)
    return coordinator.purge_expired()


if __name__ == "__main__":
    main()
