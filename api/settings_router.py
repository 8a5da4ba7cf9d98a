"""
Settings Router
Saves account-wide prompt preferences (paid plans)
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_current_identity
from constants.messages import ErrorMessages, SuccessMessages
from core.exceptions import PlanUpgradeRequiredError
from models.account import Identity, PlanTier, SettingsUpdateRequest
from services.database import upsert_account_settings
from services.plan import resolve_account_plan

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.post(
    "",
    summary="Save account settings",
    description="Save global instructions and goal presets applied to every suggestion",
)
async def save_settings(
    body: SettingsUpdateRequest,
    identity: Identity = Depends(get_current_identity),
):
    plan = resolve_account_plan(identity.account_id)
    if plan.plan == PlanTier.FREE:
        raise PlanUpgradeRequiredError(ErrorMessages.SETTINGS_UPGRADE_REQUIRED)

    goal_presets = [preset.model_dump(exclude_none=True) for preset in body.goal_presets or []]
    upsert_account_settings(
        identity.account_id,
        body.global_instructions,
        goal_presets,
    )
    logger.info(
        f"Saved settings for account {identity.account_id} ({len(goal_presets)} presets)"
    )

    return {
        "message": SuccessMessages.SETTINGS_SAVED,
        "globalInstructions": body.global_instructions,
        "goalPresets": goal_presets,
    }
