#!/usr/bin/env python3
"""
Matchcore — Mutual Match Manager: batch detection and statistics CLI

Management script for the mutual-match detector.  Provides two subcommands:

  batch   Run reciprocal-interest detection for users (all users with
           accepted interests when no ids are given).
  stats   Report mutual-match statistics for one user.

Usage examples
--------------
  # Detect matches for every user who has received an accepted interest
  python scripts/mutual_match_manager.py batch

  # Detect matches for specific users
  python scripts/mutual_match_manager.py batch --user-id <uuid> --user-id <uuid>

  # Show stats for a user as JSON
  python scripts/mutual_match_manager.py stats <uuid> --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid

# Ensure the project root is importable
sys.path.insert(0, ".")

from sqlalchemy import select

from matchcore.database import dispose_engine, get_session_factory
from matchcore.models.interest import Interest
from matchcore.services.interest_service import InterestService
from matchcore.services.mutual_match_service import MutualMatchDetector
from matchcore.services.notification_service import NotificationService


def _detector() -> MutualMatchDetector:
    return MutualMatchDetector(InterestService(), NotificationService())


# ──────────────────────────────────────────────────────────────────────────────
# Subcommand: batch
# ──────────────────────────────────────────────────────────────────────────────

async def cmd_batch(args: argparse.Namespace) -> None:
    """Run batch mutual-match detection and commit the results."""
    detector = _detector()

    async with get_session_factory()() as session:
        if args.user_id:
            user_ids = [uuid.UUID(u) for u in args.user_id]
        else:
            result = await session.execute(
                select(Interest.receiver_id).where(Interest.status == "accepted").distinct()
            )
            user_ids = list(result.scalars().all())

        outcome = await detector.batch_process_mutual_matches(user_ids, session)
        if args.dry_run:
            await session.rollback()
        else:
            await session.commit()

    await dispose_engine()

    print(f"\n{'=' * 60}")
    print(f"  Mutual Match Batch{' (dry run)' if args.dry_run else ''}")
    print(f"{'=' * 60}")
    print(f"  Users processed:   {outcome.processed}")
    print(f"  Matches created:   {outcome.matches_created}")
    print(f"  Errors:            {outcome.errors}")
    print(f"{'=' * 60}\n")

    if outcome.errors:
        sys.exit(2)


# ──────────────────────────────────────────────────────────────────────────────
# Subcommand: stats
# ──────────────────────────────────────────────────────────────────────────────

async def cmd_stats(args: argparse.Namespace) -> None:
    """Report mutual-match statistics for one user."""
    detector = _detector()

    async with get_session_factory()() as session:
        stats = await detector.get_mutual_match_stats(uuid.UUID(args.user_id), session)

    await dispose_engine()

    if args.json:
        print(json.dumps(stats.model_dump(mode="json"), indent=2))
        return

    print(f"\n{'=' * 60}")
    print(f"  Mutual Matches for {args.user_id}")
    print(f"{'=' * 60}")
    print(f"  Total:             {stats.total_matches}")
    print(f"  Active:            {stats.active_matches}")
    print(f"  Contacted:         {stats.contacted_matches}")
    print(f"  Average score:     {stats.average_match_score}")
    for quality, count in stats.matches_by_quality.items():
        print(f"    {quality:<10} {count}")
    print(f"{'=' * 60}\n")


# ──────────────────────────────────────────────────────────────────────────────
# CLI entry point
# ──────────────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Matchcore Mutual Match Manager: batch detection and statistics.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # ── batch ─────────────────────────────────────────────────────────
    batch_parser = subparsers.add_parser(
        "batch",
        help="Detect reciprocal accepted interests and create mutual matches.",
    )
    batch_parser.add_argument(
        "--user-id",
        action="append",
        default=[],
        help="Limit the batch to this user (repeatable).",
    )
    batch_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Roll back instead of committing.",
    )

    # ── stats ─────────────────────────────────────────────────────────
    stats_parser = subparsers.add_parser("stats", help="Report mutual-match statistics for a user.")
    stats_parser.add_argument("user_id", help="User id (UUID).")
    stats_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Output raw JSON.",
    )

    args = parser.parse_args()

    if args.command == "batch":
        asyncio.run(cmd_batch(args))
    elif args.command == "stats":
        asyncio.run(cmd_stats(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
