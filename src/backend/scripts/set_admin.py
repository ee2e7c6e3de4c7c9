"""
Grant or revoke admin rights.

This is the only code path that writes the `is_admin` flag; nothing reachable
over HTTP does.

Usage:
    python scripts/set_admin.py user@example.com
    python scripts/set_admin.py user@example.com --revoke
"""

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from db.session import async_session, close_db
from repositories.user_repository import UserRepository

logger = structlog.get_logger(__name__)


async def set_admin(email: str, is_admin: bool = True) -> bool:
    """Set the admin flag for the account with this email."""
    async with async_session() as session:
        users = UserRepository(session)
        user = await users.get_by_email(email)
        if user is None:
            print(f"- No account for {email}")
            return False

        await users.set_metadata_flag(user.id, "is_admin", is_admin)
        await session.commit()

    logger.info("admin_flag_set", user_id=user.id, is_admin=is_admin)
    print(f"✓ {email}: is_admin={is_admin}")
    return True


async def main(email: str, revoke: bool) -> int:
    try:
        found = await set_admin(email, is_admin=not revoke)
    finally:
        await close_db()
    return 0 if found else 1


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Grant or revoke admin rights")
    parser.add_argument("email", help="Account email")
    parser.add_argument("--revoke", action="store_true", help="Remove admin rights instead")
    args = parser.parse_args()

    raise SystemExit(asyncio.run(main(args.email, args.revoke)))
