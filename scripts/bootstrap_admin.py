#!/usr/bin/env python3
"""Create (or repair) the default admin account.

Usage:
    # Using environment variables:
    ADMIN_EMAIL=admin@abhaya.com ADMIN_PASSWORD=secret123 python scripts/bootstrap_admin.py

    # Or with command line args:
    python scripts/bootstrap_admin.py --email admin@abhaya.com --password secret123

Environment Variables:
    ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME: the account to ensure
    DATABASE_URL: PostgreSQL connection string (uses memory store if not set)
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


async def bootstrap_admin(email: str, password: str, name: str, dry_run: bool = False) -> dict:
    """Ensure the admin exists; returns user_id, email and status."""
    # Import here to avoid loading config before env vars are set
    from newsadmin.service.runtime import get_runtime

    runtime = get_runtime()
    if dry_run:
        existing = runtime.store.get_user_by_email(email.strip().lower())
        action = "reset" if existing else "create"
        print(f"[DRY RUN] Would {action} admin user: {email}")
        return {"user_id": existing.id if existing else None, "email": email, "status": "dry_run"}

    user, created = await runtime.auth.bootstrap_admin(email.strip().lower(), password, name)
    return {
        "user_id": user.id,
        "email": user.email,
        "status": "created" if created else "exists",
    }


def main():
    parser = argparse.ArgumentParser(
        description="Bootstrap the default admin user for the news admin API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--email",
        default=os.environ.get("ADMIN_EMAIL", "admin@abhaya.com"),
        help="Admin email (or set ADMIN_EMAIL env var)",
    )
    parser.add_argument(
        "--password",
        default=os.environ.get("ADMIN_PASSWORD"),
        help="Admin password (or set ADMIN_PASSWORD env var)",
    )
    parser.add_argument(
        "--name",
        default=os.environ.get("ADMIN_NAME", "Admin User"),
        help="Display name (or set ADMIN_NAME env var)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )

    args = parser.parse_args()

    if not args.password:
        print("Error: --password or ADMIN_PASSWORD environment variable required")
        sys.exit(1)

    if not os.environ.get("DATABASE_URL"):
        os.environ["USE_MEMORY_STORE"] = "true"
        print("Note: Using in-memory store (set DATABASE_URL for persistence)")

    try:
        result = asyncio.run(
            bootstrap_admin(args.email, args.password, args.name, args.dry_run)
        )
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)

    if result["status"] == "created":
        print("\nAdmin user created successfully!")
        print(f"  Email: {result['email']}")
        print(f"  User ID: {result['user_id']}")
    elif result["status"] == "exists":
        print(f"\nAdmin user {result['email']} already exists; password and lockout reset.")


if __name__ == "__main__":
    main()
