"""
Recompute and persist one user's behavior profile.

Usage:
  python scripts/analyze_user_behavior.py --user-id <uuid>

Needs SUPABASE_URL and SUPABASE_API_KEY (a service key, since the script
reads another user's rows).
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

from dotenv import find_dotenv, load_dotenv
from supabase import create_client

from cinetrack_core.errors import DomainError
from cinetrack_core.types import BundleKind
from cinetrack_history.supabase_repo import SupabaseHistoryStore
from cinetrack_insights.behavior.analyzer import compute_profile
from cinetrack_insights.behavior.report import format_report

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


def _validate_env() -> tuple[str, str]:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_API_KEY")
    missing = [name for name, value in (("SUPABASE_URL", url), ("SUPABASE_API_KEY", key)) if not value]
    if missing:
        raise EnvironmentError(f"Missing required env vars: {', '.join(missing)}")
    return url, key


async def analyze(store: SupabaseHistoryStore, user_id: str, *, persist: bool = True):
    logger.info("Loading history and ratings for %s", user_id)
    started = datetime.now(timezone.utc)
    history, ratings = await asyncio.gather(
        store.get_history(user_id), store.get_ratings(user_id)
    )
    logger.info("%d library rows, %d ratings", len(history), len(ratings))

    profile = compute_profile(user_id, history, ratings)
    if persist:
        await store.upsert_bundle(
            BundleKind.BEHAVIOR,
            user_id,
            profile.model_dump(mode="json"),
            updated_at=profile.computed_at,
            generation_started=started,
        )
        logger.info("Behavior profile cached for %s", user_id)
    return profile


def main():
    parser = argparse.ArgumentParser(
        description="Recompute and cache a user's behavioral profile"
    )
    parser.add_argument("--user-id", required=True, help="User id (UUID)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the profile without writing it to the cache",
    )
    args = parser.parse_args()

    load_dotenv(find_dotenv(), override=False)
    url, key = _validate_env()
    store = SupabaseHistoryStore(create_client(url, key))

    try:
        profile = asyncio.run(analyze(store, args.user_id, persist=not args.dry_run))
    except DomainError as e:
        logger.error("Analysis failed for %s: %s (%s)", args.user_id, e, e.code)
        sys.exit(1)
    print(format_report(profile))


if __name__ == "__main__":
    main()
