"""
Check that the review schema is in place.

Lists the public tables and reports which review tables are missing,
e.g. before `alembic upgrade head` has been run.
"""

import asyncio
import sys
from typing import Iterable, List

import asyncpg

from src.db.models import Base
from src.settings import DATABASE_URL


def missing_tables(found: Iterable[str]) -> List[str]:
    present = set(found)
    return sorted(name for name in Base.metadata.tables if name not in present)


def plain_dsn(url: str) -> str:
    # asyncpg wants a plain postgresql:// DSN, not the SQLAlchemy driver URL.
    return url.replace("postgresql+asyncpg://", "postgresql://", 1)


async def main() -> int:
    conn = await asyncpg.connect(plain_dsn(DATABASE_URL))
    try:
        rows = await conn.fetch(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'"
        )
    finally:
        await conn.close()

    found = [r["table_name"] for r in rows]
    for name in sorted(found):
        print(name)

    missing = missing_tables(found)
    if missing:
        print(f"\nMissing review tables: {', '.join(missing)}")
        return 1
    print("\nReview schema is complete.")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
