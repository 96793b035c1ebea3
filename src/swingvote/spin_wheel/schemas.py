"""Request/response models for the spin wheel."""

from __future__ import annotations

from datetime import datetime

from swingvote.schemas import CamelModel, PaginationMeta


class SpinRequest(CamelModel):
    profile_id: str


class ClaimPrizeRequest(CamelModel):
    prize_id: str


class UseTokenRequest(CamelModel):
    profile_id: str
    token_id: str


class RewardResponse(CamelModel):
    id: str
    name: str
    description: str
    icon: str
    probability: float
    popup_message: str
    reward_type: str
    reward_value: int | None
    is_active: bool
    sort_order: int


class RewardListResponse(CamelModel):
    rewards: list[RewardResponse]


class SpinResponse(CamelModel):
    reward: RewardResponse
    prize_id: str | None
    message: str


class CanSpinResponse(CamelModel):
    can_spin: bool
    next_spin_at: datetime | None
    has_retry_prize: bool
    retry_prize_id: str | None = None


class SpinHistoryEntry(CamelModel):
    id: str
    reward_id: str
    reward_name: str
    reward_type: str
    spun_at: datetime


class SpinHistoryResponse(CamelModel):
    data: list[SpinHistoryEntry]
    pagination: PaginationMeta


class PrizeResponse(CamelModel):
    id: str
    prize_type: str
    prize_value: int | None
    is_active: bool
    is_claimed: bool
    claimed_at: datetime | None
    expires_at: datetime | None
    created_at: datetime


class PrizeListResponse(CamelModel):
    prizes: list[PrizeResponse]


class ClaimPrizeResponse(CamelModel):
    success: bool
    message: str
    prize: PrizeResponse


class UseTokenResponse(CamelModel):
    success: bool
    message: str
    multiplier: int
