"""
Plan resolution with lazy expiry.

Expired paid plans are downgraded the first time they are read instead of by
a background sweep; reads between expiry and the next access may be stale.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from core.exceptions import StoreError
from models.account import AccountPlan, PlanTier
from services.database import get_account, set_account_plan

logger = logging.getLogger(__name__)


def resolve_account_plan(account_id: str, client: Optional[Client] = None) -> AccountPlan:
    """
    Resolve the account's current entitlement.

    Args:
        account_id: Account ID
        client: Optional injected Supabase client

    Returns:
        AccountPlan: ``free``/inactive if the paid plan has expired,
        otherwise the stored plan

    Raises:
        AccountNotFoundError: If the account does not exist
        StoreError: If the account cannot be read
    """
    account = get_account(account_id, client=client)
    expires_at = account.plan_expires_at

    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if expires_at < datetime.now(timezone.utc):
            try:
                set_account_plan(account_id, PlanTier.FREE, expires_at=None, client=client)
            except StoreError as e:
                # retried on the next read
                logger.warning(f"Could not persist downgrade for account {account_id}: {e.message}")
            else:
                logger.info(
                    f"Downgraded expired {account.current_plan.value} plan to free for account {account_id}"
                )
            return AccountPlan(plan=PlanTier.FREE, is_active=False)

    plan = account.current_plan
    return AccountPlan(plan=plan, is_active=plan != PlanTier.FREE)
