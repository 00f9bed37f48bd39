#!/usr/bin/env python
"""
Seed the permission catalog, the system roles and an optional superadmin.
"""

import argparse
import asyncio
import sys


# Add src to path for imports
sys.path.insert(0, "src")

from keystone.core.database import async_session_factory
from keystone.core.permissions.seeding import ensure_superadmin, seed_policy


async def main(superadmin_email: str | None) -> None:
    """Run the seeding."""
    async with async_session_factory() as session:
        result = await seed_policy(session)
        print(f"Permissions created: {result.permissions_created}")
        print(f"System roles created: {result.roles_created}")
        print(f"System roles extended: {result.roles_extended}")

        if superadmin_email:
            if await ensure_superadmin(session, superadmin_email):
                print(f"Created superadmin: {superadmin_email}")
            else:
                print(f"Actor already exists: {superadmin_email}")

        await session.commit()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed authorization data")
    parser.add_argument(
        "--superadmin",
        "-s",
        metavar="EMAIL",
        default=None,
        help="Also create a superadmin actor with this email",
    )
    args = parser.parse_args()

    asyncio.run(main(args.superadmin))
