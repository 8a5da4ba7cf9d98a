"""
Admin Router
Operator endpoints guarded by a shared admin key
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from config.settings import get_settings
from constants.messages import ErrorMessages, SuccessMessages
from core.exceptions import AdminNotConfiguredError, AdminUnauthorizedError
from models.account import PlanUpdateRequest
from services.database import get_account, set_account_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


async def require_admin_key(x_admin_key: Optional[str] = Header(None)) -> None:
    """
    Raises:
        AdminNotConfiguredError: If ADMIN_API_KEY is not set
        AdminUnauthorizedError: If the header is missing or wrong
    """
    expected = get_settings().admin_api_key
    if not expected:
        raise AdminNotConfiguredError(ErrorMessages.ADMIN_NOT_CONFIGURED)
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise AdminUnauthorizedError(ErrorMessages.ADMIN_UNAUTHORIZED)


@router.post(
    "/plan",
    summary="Set account plan",
    description="Set an account's plan tier and optional expiry",
    dependencies=[Depends(require_admin_key)],
)
async def update_plan(body: PlanUpdateRequest):
    # 404 for unknown accounts instead of a silent no-op update
    get_account(body.account_id)
    set_account_plan(body.account_id, body.plan, expires_at=body.plan_expires_at)

    logger.info(f"Admin set plan {body.plan.value} for account {body.account_id}")

    return {
        "message": SuccessMessages.PLAN_UPDATED,
        "accountId": body.account_id,
        "plan": body.plan.value,
        "planExpiresAt": body.plan_expires_at.isoformat() if body.plan_expires_at else None,
    }
