"""
Account, plan and settings models.

Accounts are owned by the billing/auth side; the suggestion pipeline reads
plan fields and performs the lazy downgrade of expired paid plans.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanTier(str, Enum):
    """Entitlement tiers."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class Account(BaseModel):
    """Row from the accounts table (only the fields the pipeline reads)."""

    id: str
    plan: Optional[PlanTier] = None
    plan_tier: Optional[PlanTier] = None
    plan_expires_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "extra": "ignore"}

    @property
    def current_plan(self) -> PlanTier:
        return self.plan or self.plan_tier or PlanTier.FREE


class AccountPlan(BaseModel):
    """Resolved entitlement."""

    plan: PlanTier
    is_active: bool


class Identity(BaseModel):
    """Caller identity carried by the bearer token."""

    account_id: str
    user_id: str


class GoalPreset(BaseModel):
    """Saved conversation preset"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., description="Preset ID")
    name: Optional[str] = Field(None, description="Display name")
    goal: Optional[str] = Field(None, description="Conversation goal this preset applies")
    instructions: Optional[str] = Field(None, description="Extra instructions appended to the prompt")


class AccountSettings(BaseModel):
    """Row from account_settings"""

    account_id: str
    global_instructions: Optional[str] = None
    goal_presets: List[GoalPreset] = Field(default_factory=list)

    model_config = {"from_attributes": True, "extra": "ignore"}

    def find_preset(self, preset_id: str) -> Optional[GoalPreset]:
        return next((preset for preset in self.goal_presets if preset.id == preset_id), None)


class SettingsUpdateRequest(BaseModel):
    """Body of POST /settings"""

    model_config = ConfigDict(populate_by_name=True)

    global_instructions: Optional[str] = Field(None, alias="globalInstructions", min_length=1)
    goal_presets: Optional[List[GoalPreset]] = Field(None, alias="goalPresets")


class PlanUpdateRequest(BaseModel):
    """Body of POST /admin/plan"""

    model_config = ConfigDict(populate_by_name=True)

    account_id: str = Field(..., alias="accountId")
    plan: PlanTier
    plan_expires_at: Optional[datetime] = Field(None, alias="planExpiresAt")
