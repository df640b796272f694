"""
Print a bearer token for an existing learner, looked up by email.
"""

from __future__ import annotations

import argparse
import asyncio
from typing import Optional

from sqlalchemy import select

from src.auth.service import create_access_token
from src.db.models import User
from src.db.session import AsyncSessionLocal


async def _find_user_id(email: str) -> Optional[int]:
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User.id).where(User.email == email))
        return result.scalar_one_or_none()


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue an access token for a learner.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--minutes", type=int, default=None, help="Token lifetime in minutes")
    args = parser.parse_args()

    user_id = asyncio.run(_find_user_id(args.email))
    if user_id is None:
        print(f"Error: no learner with email {args.email}")
        return
    print(create_access_token(user_id, expires_minutes=args.minutes))


if __name__ == "__main__":
    main()
