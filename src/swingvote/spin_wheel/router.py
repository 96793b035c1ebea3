"""Spin wheel endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import get_session
from swingvote.db.models import PrizeType
from swingvote.spin_wheel.schemas import (
    CanSpinResponse,
    ClaimPrizeRequest,
    ClaimPrizeResponse,
    PrizeListResponse,
    PrizeResponse,
    RewardListResponse,
    RewardResponse,
    SpinHistoryResponse,
    SpinRequest,
    SpinResponse,
    UseTokenRequest,
    UseTokenResponse,
)
from swingvote.spin_wheel.service import (
    activate_multiplier_token,
    can_spin,
    claim_prize,
    list_active_prizes,
    list_rewards,
    spin,
    spin_history,
)

router = APIRouter(prefix="/api/v1/spin-wheel", tags=["Spin Wheel"])


@router.get("/rewards", response_model=RewardListResponse)
async def get_rewards(db: AsyncSession = Depends(get_session)):
    rewards = await list_rewards(db)
    return RewardListResponse(rewards=[RewardResponse.model_validate(r) for r in rewards])


@router.post("/spin", response_model=SpinResponse)
async def post_spin(body: SpinRequest, db: AsyncSession = Depends(get_session)):
    """Spin once. A pending free retry spin bypasses the daily cooldown."""
    return SpinResponse.model_validate(await spin(db, body.profile_id))


@router.get("/{profile_id}/can-spin", response_model=CanSpinResponse)
async def get_can_spin(profile_id: str, db: AsyncSession = Depends(get_session)):
    return CanSpinResponse.model_validate(await can_spin(db, profile_id))


@router.get("/{profile_id}/history", response_model=SpinHistoryResponse)
async def get_history(
    profile_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    rows, pagination = await spin_history(db, profile_id, page, limit)
    return SpinHistoryResponse.model_validate({"data": rows, "pagination": pagination})


@router.get("/{profile_id}/prizes", response_model=PrizeListResponse)
async def get_prizes(
    profile_id: str,
    include_expired: bool = Query(False, alias="includeExpired"),
    db: AsyncSession = Depends(get_session),
):
    prizes = await list_active_prizes(db, profile_id, include_expired)
    return PrizeListResponse(prizes=[PrizeResponse.model_validate(p) for p in prizes])


@router.post("/claim", response_model=ClaimPrizeResponse)
async def post_claim(body: ClaimPrizeRequest, db: AsyncSession = Depends(get_session)):
    prize = await claim_prize(db, body.prize_id)
    message = (
        "Badge activated! Your VIP Voter badge is now displayed on your profile."
        if prize.prize_type == PrizeType.EXCLUSIVE_BADGE
        else "Prize claimed successfully"
    )
    return ClaimPrizeResponse(success=True, message=message, prize=PrizeResponse.model_validate(prize))


@router.post("/use-token", response_model=UseTokenResponse)
async def post_use_token(body: UseTokenRequest, db: AsyncSession = Depends(get_session)):
    activation = await activate_multiplier_token(db, body.profile_id, body.token_id)
    return UseTokenResponse(success=True, message=activation.message, multiplier=activation.multiplier)
