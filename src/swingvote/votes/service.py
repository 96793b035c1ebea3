"""Casting free and credit-funded votes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.config import get_settings
from swingvote.database import store_access
from swingvote.db.models import Contest, Profile, Vote, VoteType
from swingvote.errors import (
    ConcurrentClaimConflict,
    CooldownActive,
    NotFoundError,
    ValidationError,
)
from swingvote.gamification.milestone_service import record_crossed_milestones
from swingvote.profiles import require_profile
from swingvote.spin_wheel.service import consume_multiplier_token
from swingvote.votes.multiplier import get_user_multiplier_token, resolve_multiplier

logger = structlog.get_logger()

FREE_VOTE_WEIGHT = 1
PAID_VOTE_WEIGHT = 10


@dataclass(frozen=True)
class FreeVoteStatus:
    available: bool
    next_available_at: datetime | None = None


@dataclass(frozen=True)
class CreditVoteResult:
    vote: Vote
    remaining_credits: int
    multiplier: int
    original_count: int
    actual_count: int


@dataclass(frozen=True)
class AvailableVotes:
    profile_id: str
    available_votes: int
    last_free_vote_at: datetime | None
    free_vote_available: bool


def vote_weight(vote_type: str) -> int:
    if vote_type == VoteType.PAID:
        return PAID_VOTE_WEIGHT
    if vote_type == VoteType.FREE:
        return FREE_VOTE_WEIGHT
    msg = f"Unknown vote type: {vote_type}"
    raise ValueError(msg)


def weighted_value(count: int, vote_type: str, multiplier: int = 1) -> int:
    """Leaderboard value of a vote: count x type weight x multiplier."""
    return count * vote_weight(vote_type) * multiplier


def _free_vote_next_at(profile: Profile, now: datetime) -> datetime | None:
    if profile.last_free_vote_at is None:
        return None
    next_at = profile.last_free_vote_at + timedelta(hours=get_settings().free_vote_interval_hours)
    return next_at if now < next_at else None


async def free_vote_status(db: AsyncSession, profile_id: str, now: datetime | None = None) -> FreeVoteStatus:
    now = now or datetime.now(timezone.utc)
    profile = await require_profile(db, profile_id)
    next_at = _free_vote_next_at(profile, now)
    return FreeVoteStatus(available=next_at is None, next_available_at=next_at)


async def _require_open_contest(db: AsyncSession, contest_id: str) -> Contest:
    with store_access("get_contest"):
        contest = await db.get(Contest, contest_id)
    if contest is None:
        raise NotFoundError("Contest")
    if not contest.is_voting_enabled:
        raise ValidationError("Voting is not enabled for this contest yet")
    return contest


async def _require_party(db: AsyncSession, profile_id: str, role: str) -> Profile:
    try:
        return await require_profile(db, profile_id)
    except NotFoundError:
        raise NotFoundError(role) from None


async def cast_free_vote(
    db: AsyncSession,
    voter_id: str,
    votee_id: str,
    contest_id: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> Vote:
    now = now or datetime.now(timezone.utc)
    if voter_id == votee_id:
        raise ValidationError("You cannot vote for yourself")

    await _require_open_contest(db, contest_id)
    voter = await _require_party(db, voter_id, "Voter")

    next_at = _free_vote_next_at(voter, now)
    if next_at is not None:
        raise CooldownActive("You can only use a free vote once every 24 hours", next_at)

    await _require_party(db, votee_id, "Votee")

    vote = Vote(
        type=VoteType.FREE,
        count=get_settings().free_vote_count,
        voter_id=voter_id,
        votee_id=votee_id,
        contest_id=contest_id,
        comment=comment,
        created_at=now,
    )
    with store_access("cast_free_vote"):
        db.add(vote)
        voter.last_free_vote_at = now
        await db.flush()

    await record_crossed_milestones(db, votee_id)
    logger.info("free_vote_cast", voter_id=voter_id, votee_id=votee_id, count=vote.count)
    return vote


async def _token_multiplier(db: AsyncSession, voter_id: str, now: datetime) -> int | None:
    """Consume the voter's token, if any. A lost race just means no token."""
    token = await get_user_multiplier_token(db, voter_id, now)
    if token is None:
        return None
    try:
        return await consume_multiplier_token(db, token.id, now)
    except ConcurrentClaimConflict:
        logger.info("multiplier_token_race_lost", voter_id=voter_id, prize_id=token.id)
        return None


async def cast_vote_with_credits(
    db: AsyncSession,
    voter_id: str,
    votee_id: str,
    contest_id: str,
    count: int = 1,
    comment: str | None = None,
    now: datetime | None = None,
) -> CreditVoteResult:
    """Spend ``count`` credits on a PAID vote.

    Only the raw count is deducted; the stored vote carries the multiplied count.
    """
    now = now or datetime.now(timezone.utc)
    settings = get_settings()
    if voter_id == votee_id:
        raise ValidationError("You cannot vote for yourself")
    if count < 1 or count > settings.max_paid_vote_count:
        raise ValidationError(f"Vote count must be between 1 and {settings.max_paid_vote_count}")

    await _require_open_contest(db, contest_id)
    voter = await _require_party(db, voter_id, "Voter profile")
    if voter.available_votes < count:
        raise ValidationError(
            f"Insufficient votes. You have {voter.available_votes} vote(s) available, "
            f"but tried to cast {count} vote(s)."
        )
    await _require_party(db, votee_id, "Votee profile")

    multiplier = await resolve_multiplier(db, voter_id, now)
    token_factor = await _token_multiplier(db, voter_id, now)
    if token_factor is not None:
        multiplier = token_factor

    actual_count = count * multiplier
    with store_access("cast_vote_with_credits"):
        result = await db.execute(
            update(Profile)
            .where(Profile.id == voter_id, Profile.available_votes >= count)
            .values(available_votes=Profile.available_votes - count)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ValidationError("Insufficient votes")

        vote = Vote(
            type=VoteType.PAID,
            count=actual_count,
            voter_id=voter_id,
            votee_id=votee_id,
            contest_id=contest_id,
            comment=comment,
            created_at=now,
        )
        db.add(vote)
        await db.flush()
        await db.refresh(voter, ["available_votes"])

    await record_crossed_milestones(db, votee_id)
    logger.info(
        "credit_vote_cast",
        voter_id=voter_id,
        votee_id=votee_id,
        original_count=count,
        multiplier=multiplier,
        used_token=token_factor is not None,
    )
    return CreditVoteResult(
        vote=vote,
        remaining_credits=voter.available_votes,
        multiplier=multiplier,
        original_count=count,
        actual_count=actual_count,
    )


async def available_votes(db: AsyncSession, profile_id: str, now: datetime | None = None) -> AvailableVotes:
    now = now or datetime.now(timezone.utc)
    profile = await require_profile(db, profile_id)
    return AvailableVotes(
        profile_id=profile.id,
        available_votes=profile.available_votes,
        last_free_vote_at=profile.last_free_vote_at,
        free_vote_available=_free_vote_next_at(profile, now) is None,
    )
