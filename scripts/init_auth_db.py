#!/usr/bin/env python3
"""
Initialize the authentication database schema.

Run this after first setup. Creates the users, password_reset_tokens and
audit_log tables if they do not exist.

Usage:
    python scripts/init_auth_db.py
    python scripts/init_auth_db.py --database-url sqlite:///auth.db
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from contract_intel.config import AuthSettings, configure_logging
from contract_intel.database.auth_db import AuthDB


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create authentication tables")
    parser.add_argument("--database-url", default=None, help="Override the database URL")
    args = parser.parse_args(argv)

    configure_logging()

    print("=" * 60)
    print("Contract Intelligence Auth Database Setup")
    print("=" * 60)

    auth_db = AuthDB.from_settings(AuthSettings.from_env(), args.database_url)
    auth_db.init_schema()

    print("\nSchema ready: users, password_reset_tokens, audit_log")


if __name__ == "__main__":
    main()
