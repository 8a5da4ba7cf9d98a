"""
Database service layer for Supabase operations
Handles accounts, marketplace threads, audit actions and account settings
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from supabase import Client

from core.clients.supabase import get_supabase_client
from core.exceptions import AccountNotFoundError, StoreError
from models.account import Account, AccountSettings, GoalPreset, PlanTier

logger = logging.getLogger(__name__)


def _client(client: Optional[Client]) -> Client:
    return client if client is not None else get_supabase_client()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# Account Operations
# ============================================================================

def get_account(account_id: str, client: Optional[Client] = None) -> Account:
    """
    Fetch an account row.

    Args:
        account_id: Account ID
        client: Optional injected Supabase client

    Returns:
        Account: The account's plan fields

    Raises:
        AccountNotFoundError: If no row exists
        StoreError: If the query fails
    """
    try:
        response = (
            _client(client)
            .table("accounts")
            .select("id,plan,plan_tier,plan_expires_at")
            .eq("id", account_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"Error fetching account {account_id}: {e}")
        raise StoreError(message="Failed to fetch account", details=str(e)) from e

    if not response.data:
        raise AccountNotFoundError()

    return Account(**response.data[0])


def set_account_plan(
    account_id: str,
    plan: PlanTier,
    expires_at: Optional[datetime] = None,
    client: Optional[Client] = None,
) -> None:
    """
    Write plan fields for an account.

    Both ``plan`` and the legacy ``plan_tier`` column are kept in sync.

    Raises:
        StoreError: If the update fails
    """
    try:
        _client(client).table("accounts").update(
            {
                "plan": plan.value,
                "plan_tier": plan.value,
                "plan_expires_at": expires_at.isoformat() if expires_at else None,
                "updated_at": _now_iso(),
            }
        ).eq("id", account_id).execute()
    except Exception as e:
        logger.error(f"Error updating plan for account {account_id}: {e}")
        raise StoreError(message="Failed to update account plan", details=str(e)) from e


# ============================================================================
# Thread Operations
# ============================================================================

def upsert_thread(
    account_id: str,
    user_id: str,
    fb_thread_id: str,
    listing_data: Dict[str, Any],
    client: Optional[Client] = None,
) -> None:
    """
    Insert or refresh thread metadata.

    Threads are unique per (account_id, fb_thread_id), so repeated requests
    for the same conversation only refresh listing data.

    Raises:
        StoreError: If the upsert fails
    """
    try:
        _client(client).table("threads").upsert(
            {
                "account_id": account_id,
                "user_id": user_id,
                "fb_thread_id": fb_thread_id,
                "listing_data": listing_data,
                "updated_at": _now_iso(),
            },
            on_conflict="account_id,fb_thread_id",
        ).execute()
    except Exception as e:
        logger.error(f"Error upserting thread {fb_thread_id} for account {account_id}: {e}")
        raise StoreError(message="Failed to save thread", details=str(e)) from e


# ============================================================================
# Audit Operations
# ============================================================================

def record_action(
    account_id: str,
    user_id: str,
    action_type: str,
    metadata: Dict[str, Any],
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    client: Optional[Client] = None,
) -> None:
    """
    Append an audit row to the actions table.

    Raises:
        StoreError: If the insert fails
    """
    try:
        _client(client).table("actions").insert(
            {
                "account_id": account_id,
                "user_id": user_id,
                "action_type": action_type,
                "metadata": metadata,
                "ip_address": ip_address,
                "user_agent": user_agent,
            }
        ).execute()
    except Exception as e:
        raise StoreError(message=f"Failed to record {action_type} action", details=str(e)) from e


# ============================================================================
# Account Settings Operations
# ============================================================================

def get_account_settings(account_id: str, client: Optional[Client] = None) -> Optional[AccountSettings]:
    """
    Fetch global instructions and saved presets.

    Returns:
        AccountSettings or None if the account never saved settings
    """
    try:
        response = (
            _client(client)
            .table("account_settings")
            .select("account_id,global_instructions,goal_presets")
            .eq("account_id", account_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.error(f"Error fetching settings for account {account_id}: {e}")
        raise StoreError(message="Failed to fetch account settings", details=str(e)) from e

    if not response.data:
        return None

    row = response.data[0]
    raw_presets = row.get("goal_presets")
    presets = []
    for preset in raw_presets if isinstance(raw_presets, list) else []:
        try:
            presets.append(GoalPreset.model_validate(preset))
        except ValidationError:
            logger.warning(f"Skipping unreadable preset for account {account_id}: {preset!r}")

    try:
        return AccountSettings(
            account_id=account_id,
            global_instructions=row.get("global_instructions"),
            goal_presets=presets,
        )
    except ValidationError as e:
        logger.error(f"Unreadable settings row for account {account_id}: {e}")
        raise StoreError(message="Failed to read account settings", details=str(e)) from e


def upsert_account_settings(
    account_id: str,
    global_instructions: Optional[str],
    goal_presets: List[Dict[str, Any]],
    client: Optional[Client] = None,
) -> None:
    """
    Save settings for an account (one row per account).

    Raises:
        StoreError: If the upsert fails
    """
    now = _now_iso()
    try:
        _client(client).table("account_settings").upsert(
            {
                "account_id": account_id,
                "global_instructions": global_instructions,
                "goal_presets": goal_presets,
                "updated_at": now,
            },
            on_conflict="account_id",
        ).execute()
    except Exception as e:
        logger.error(f"Error saving settings for account {account_id}: {e}")
        raise StoreError(message="Failed to save settings", details=str(e)) from e
