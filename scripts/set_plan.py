"""
Set an account's plan tier from the command line.

Writes the same fields as ``POST /admin/plan`` directly through Supabase,
for operators without an admin key at hand. Omitting ``--days`` clears the
expiry (the plan never lapses).

Usage:
    python scripts/set_plan.py <account_id> pro --days 30
    python scripts/set_plan.py <account_id> free
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timedelta, timezone

from dotenv import load_dotenv
from supabase import create_client

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.exceptions import AppException  # noqa: E402
from models.account import PlanTier  # noqa: E402
from services.database import get_account, set_account_plan  # noqa: E402

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SECRET_KEY = os.getenv("SUPABASE_SECRET_KEY", "")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set an account's plan tier")
    parser.add_argument("account_id", help="Account ID")
    parser.add_argument("plan", choices=[tier.value for tier in PlanTier], help="Plan tier")
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Plan lifetime in days (omit for no expiry)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    if not all([SUPABASE_URL, SUPABASE_SECRET_KEY]):
        logger.error("Missing required env vars (SUPABASE_URL, SUPABASE_SECRET_KEY)")
        return 1

    expires_at = None
    if args.days is not None:
        expires_at = datetime.now(timezone.utc) + timedelta(days=args.days)

    supabase = create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)

    try:
        get_account(args.account_id, client=supabase)
        set_account_plan(args.account_id, PlanTier(args.plan), expires_at=expires_at, client=supabase)
    except AppException as exc:
        logger.error(f"Could not update {args.account_id}: {exc.message}")
        return 1

    expires = expires_at.isoformat() if expires_at else "never"
    logger.info(f"Account {args.account_id} is now on {args.plan} (expires: {expires})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
