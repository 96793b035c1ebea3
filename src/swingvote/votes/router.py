"""Voting and multiplier endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import get_session
from swingvote.profiles import require_profile
from swingvote.votes.multiplier import apply_multiplier, get_active_multiplier_period
from swingvote.votes.schemas import (
    ActiveMultiplierResponse,
    AvailableVotesResponse,
    CreditVoteRequest,
    CreditVoteResponse,
    FreeVoteRequest,
    FreeVoteStatusResponse,
    MultiplierPeriodResponse,
    MultiplierResponse,
    VoteResponse,
)
from swingvote.votes.service import (
    available_votes,
    cast_free_vote,
    cast_vote_with_credits,
    free_vote_status,
)

router = APIRouter(prefix="/api/v1", tags=["Votes"])


@router.post("/votes/free", response_model=VoteResponse)
async def post_free_vote(body: FreeVoteRequest, db: AsyncSession = Depends(get_session)):
    vote = await cast_free_vote(db, body.voter_id, body.votee_id, body.contest_id, body.comment)
    return VoteResponse.model_validate(vote)


@router.get("/votes/free/{profile_id}/status", response_model=FreeVoteStatusResponse)
async def get_free_vote_status(profile_id: str, db: AsyncSession = Depends(get_session)):
    return FreeVoteStatusResponse.model_validate(await free_vote_status(db, profile_id))


@router.post("/votes/credits", response_model=CreditVoteResponse)
async def post_credit_vote(body: CreditVoteRequest, db: AsyncSession = Depends(get_session)):
    """Spend vote credits. Multipliers and tokens apply to the stored count only."""
    result = await cast_vote_with_credits(
        db, body.voter_id, body.votee_id, body.contest_id, body.count, body.comment,
    )
    vote = VoteResponse.model_validate(result.vote)
    return CreditVoteResponse(
        **vote.model_dump(),
        remaining_credits=result.remaining_credits,
        multiplier=result.multiplier,
        original_count=result.original_count,
        actual_count=result.actual_count,
    )


@router.get("/votes/available/{profile_id}", response_model=AvailableVotesResponse)
async def get_available_votes(profile_id: str, db: AsyncSession = Depends(get_session)):
    return AvailableVotesResponse.model_validate(await available_votes(db, profile_id))


@router.get("/profiles/{profile_id}/multiplier", response_model=MultiplierResponse)
async def get_profile_multiplier(profile_id: str, db: AsyncSession = Depends(get_session)):
    """What a single vote from this profile is worth right now."""
    await require_profile(db, profile_id)
    return MultiplierResponse.model_validate(await apply_multiplier(db, 1, profile_id))


@router.get("/multiplier/active", response_model=ActiveMultiplierResponse)
async def get_active_multiplier(db: AsyncSession = Depends(get_session)):
    period = await get_active_multiplier_period(db)
    if period is None:
        return ActiveMultiplierResponse(active=False)
    return ActiveMultiplierResponse(active=True, period=MultiplierPeriodResponse.model_validate(period))
