"""Referral codes, attribution, stats, leaderboard and tier table."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import get_session
from swingvote.gamification.thresholds import REFERRAL_TIERS, current_tier, next_tier
from swingvote.referrals.schemas import (
    LeaderboardResponse,
    ProcessReferralRequest,
    ProcessReferralResponse,
    ReferralCodeResponse,
    ReferralStatsResponse,
    ReferralTierResponse,
    ReferralTiersResponse,
    ShareReferralRequest,
    ShareReferralResponse,
)
from swingvote.referrals.service import (
    generate_referral_code,
    get_referral_stats,
    process_referral,
    referral_leaderboard,
    share_referral,
)

router = APIRouter(prefix="/api/v1/referrals", tags=["Referrals"])


@router.get("/tiers", response_model=ReferralTiersResponse)
async def get_tiers(count: int | None = Query(None, ge=0)):
    """All tiers; with ``count``, also where that referral count sits."""
    tiers = [ReferralTierResponse.model_validate(t) for t in REFERRAL_TIERS]
    if count is None:
        return ReferralTiersResponse(tiers=tiers)

    current = current_tier(count)
    upcoming = next_tier(count)
    return ReferralTiersResponse(
        tiers=tiers,
        referral_count=count,
        current_tier=ReferralTierResponse.model_validate(current) if current else None,
        next_tier=ReferralTierResponse.model_validate(upcoming) if upcoming else None,
        referrals_to_next_tier=upcoming.min_referrals - count if upcoming else None,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    entries, pagination = await referral_leaderboard(db, page, limit)
    return LeaderboardResponse.model_validate({"data": entries, "pagination": pagination})


@router.post("/process", response_model=ProcessReferralResponse)
async def post_process_referral(body: ProcessReferralRequest, db: AsyncSession = Depends(get_session)):
    """Attribute a fresh sign-up to a referrer and credit the referrer's bonus votes."""
    result = await process_referral(db, body.user_id, body.referral_code)
    return ProcessReferralResponse(
        bonus_votes_awarded=result.bonus_votes_awarded,
        referrer_new_count=result.referrer_new_count,
        tier_reached=result.tier_reached,
    )


@router.post("/{user_id}/code", response_model=ReferralCodeResponse)
async def post_referral_code(user_id: str, response: Response, db: AsyncSession = Depends(get_session)):
    """201 when the code was created by this call, 200 when it already existed."""
    code = await generate_referral_code(db, user_id)
    response.status_code = 201 if code.created else 200
    return ReferralCodeResponse.model_validate(code)


@router.post("/{user_id}/social-sharing", response_model=ShareReferralResponse)
async def post_social_sharing(
    user_id: str,
    body: ShareReferralRequest | None = None,
    db: AsyncSession = Depends(get_session),
):
    links = await share_referral(db, user_id, body.custom_message if body else None)
    return ShareReferralResponse.model_validate(links)


@router.get("/{user_id}/stats", response_model=ReferralStatsResponse)
async def referral_stats(user_id: str, db: AsyncSession = Depends(get_session)):
    return ReferralStatsResponse.model_validate(await get_referral_stats(db, user_id))
