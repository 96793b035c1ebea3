"""Referral request and response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from swingvote.schemas import CamelModel, PaginationMeta


class ReferralTierResponse(CamelModel):
    min_referrals: int
    max_referrals: int | None
    tier_name: str
    tier_level: int
    reward: str
    description: str
    icon: str
    color: str


class ReferralTiersResponse(CamelModel):
    tiers: list[ReferralTierResponse]
    referral_count: int | None = None
    current_tier: ReferralTierResponse | None = None
    next_tier: ReferralTierResponse | None = None
    referrals_to_next_tier: int | None = None


class ReferralCodeResponse(CamelModel):
    referral_code: str
    referral_link: str


class ShareReferralRequest(CamelModel):
    custom_message: str | None = Field(None, max_length=500)


class ShareReferralResponse(CamelModel):
    referral_code: str
    referral_link: str
    default_message: str
    sharing_urls: dict[str, str]


class ProcessReferralRequest(CamelModel):
    user_id: str
    referral_code: str = Field(min_length=1)


class ProcessReferralResponse(CamelModel):
    success: bool = True
    message: str = "Referral processed successfully"
    bonus_votes_awarded: int
    referrer_new_count: int
    tier_reached: str | None = None


class TierSummaryResponse(CamelModel):
    count: int
    name: str
    reward: str


class TierProgressResponse(CamelModel):
    current: int
    needed: int
    remaining: int
    percentage: int


class ReferredUserResponse(CamelModel):
    id: str
    name: str | None
    joined_at: datetime


class ReferralStatsResponse(CamelModel):
    referral_code: str | None
    referral_link: str | None
    total_referrals: int
    referrals: list[ReferredUserResponse]
    current_tier: TierSummaryResponse | None
    next_tier: TierSummaryResponse | None
    progress: TierProgressResponse | None


class LeaderboardEntryResponse(CamelModel):
    rank: int
    user_id: str
    profile_id: str | None
    username: str | None
    name: str | None
    profile_image: str | None
    referral_code: str | None
    total_referrals: int
    current_tier: TierSummaryResponse | None


class LeaderboardResponse(CamelModel):
    data: list[LeaderboardEntryResponse]
    pagination: PaginationMeta
