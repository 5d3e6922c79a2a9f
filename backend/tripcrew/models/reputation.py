"""
Reputation rule table and ledger entries
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RewardReason(str, Enum):
    HOST_TRIP = "host_trip"
    SHOW_UP = "show_up"
    NO_SHOW = "no_show"
    POST = "post"


REPUTATION_RULES: dict[RewardReason, int] = {
    RewardReason.HOST_TRIP: 70,
    RewardReason.SHOW_UP: 40,
    RewardReason.NO_SHOW: -30,
    RewardReason.POST: 20,
}


class ReputationChange(BaseModel):
    previous: int
    new: int
    delta: int = Field(..., description="Nominal delta requested, before the zero floor")


class ReputationEvent(BaseModel):
    """
    One ledger row. `delta` is the nominal amount; `effective_delta` is what the
    score actually moved after clamping at zero. Reverts undo `delta`.
    """

    user_id: str
    reason: RewardReason
    is_revert: bool = False
    delta: int
    effective_delta: int
    previous: int
    new: int
    context: dict = Field(default_factory=dict)
    reverted: bool = False
    reverts_event_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        use_enum_values = True

    def tag(self) -> str:
        reason = RewardReason(self.reason).value
        return f"revert_{reason}" if self.is_revert else reason
