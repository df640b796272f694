"""
Utility script for seeding a learner's deck from a word list.

Accepts a CSV file with ``word`` and ``definition`` columns or a JSONL file
with one ``{"word": ..., "definition": ...}`` object per line.

Two modes:
- Default (dry-run): summarize the file, no DB writes.
- Apply mode (--apply): create the learner if needed and add every new word
  as an ACTIVE card on the learner's default schedule.
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import json
from pathlib import Path
from typing import Dict, List

from sqlalchemy import select

from src.db.models import Card, User
from src.db.session import AsyncSessionLocal
from src.scheduling.config import load_scheduling_config
from src.scheduling.review_service import ReviewService
from src.scheduling.store import SqlAlchemyReviewStore


def load_entries(path: Path) -> List[Dict[str, str]]:
    entries: List[Dict[str, str]] = []
    if path.suffix.lower() == ".csv":
        with path.open("r", encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                entries.append({"word": row.get("word") or "", "definition": row.get("definition") or ""})
        return entries

    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or line.startswith("//"):
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            entries.append({"word": str(obj.get("word") or ""), "definition": str(obj.get("definition") or "")})
    return entries


def summarize_entries(entries: List[Dict[str, str]]) -> None:
    total = len(entries)
    complete = sum(1 for e in entries if e["word"].strip() and e["definition"].strip())
    unique = len({e["word"].strip().lower() for e in entries if e["word"].strip()})
    print(f"Loaded {total} entries")
    print(f"  complete:     {complete:5d}")
    print(f"  incomplete:   {total - complete:5d}")
    print(f"  unique words: {unique:5d}")


async def apply_seed(entries: List[Dict[str, str]], *, email: str, username: str) -> None:
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(email=email, username=username)
            session.add(user)
            await session.commit()
            print(f"Created learner {username} (id={user.id})")
        else:
            print(f"Using existing learner {user.username} (id={user.id})")

        result = await session.execute(select(Card.word).where(Card.user_id == user.id))
        existing = {word.strip().lower() for word in result.scalars().all()}

        service = ReviewService(SqlAlchemyReviewStore(session), config=load_scheduling_config())
        inserted = 0
        skipped_existing = 0
        skipped_incomplete = 0
        for entry in entries:
            word = entry["word"].strip()
            definition = entry["definition"].strip()
            if not word or not definition:
                skipped_incomplete += 1
                continue
            if word.lower() in existing:
                skipped_existing += 1
                continue
            await service.create_card(user.id, word, definition)
            existing.add(word.lower())
            inserted += 1

    print("\nSeeding complete.")
    print(f"  Inserted cards:        {inserted}")
    print(f"  Skipped existing:      {skipped_existing}")
    print(f"  Skipped incomplete:    {skipped_incomplete}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Summarize or seed a learner's cards from a CSV or JSONL word list.",
    )
    parser.add_argument("--input", type=Path, required=True, help="Path to a .csv or .jsonl word list")
    parser.add_argument("--email", default="learner@example.com", help="Learner email")
    parser.add_argument("--username", default="learner", help="Learner username (used when creating)")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply changes to the database. Without this flag, runs in dry-run mode.",
    )
    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: input file not found: {args.input}")
        return

    print(f"Loading word list from {args.input}...")
    entries = load_entries(args.input)
    summarize_entries(entries)

    if not args.apply:
        print("\nDry run complete. No database changes were made.")
        return

    print("\nApply mode enabled: seeding cards into the database...")
    asyncio.run(apply_seed(entries, email=args.email, username=args.username))


if __name__ == "__main__":
    main()
