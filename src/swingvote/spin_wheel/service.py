"""Daily spin wheel: reward selection, prize grants and claims.

Claim state on ``ActiveSpinPrize`` only ever changes through a conditional
``UPDATE ... WHERE is_claimed = false AND is_active = true``. Zero affected
rows means a concurrent request won the race and surfaces as
``ConcurrentClaimConflict``.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.config import get_settings
from swingvote.database import store_access
from swingvote.db.models import (
    ActiveSpinPrize,
    Profile,
    PrizeType,
    SpinWheelHistory,
    SpinWheelReward,
)
from swingvote.errors import (
    ConcurrentClaimConflict,
    CooldownActive,
    NotFoundError,
    ValidationError,
)
from swingvote.pagination import page_offset, pagination_metadata
from swingvote.profiles import resolve_profile

logger = structlog.get_logger()

DEFAULT_BONUS_VOTES = 100
DEFAULT_MULTIPLIER_DAYS = 3
DEFAULT_FOLLOW_BACK_DAYS = 30

MANUAL_CLAIM_TYPES = frozenset({
    PrizeType.PERSONAL_MESSAGE,
    PrizeType.INSTAGRAM_FEATURE,
    PrizeType.DIGITAL_BOUDOIR_ACCESS,
    PrizeType.BTS_VIDEO_LINK,
    PrizeType.MEET_GREET_DISCOUNT,
})


@dataclass(frozen=True)
class SpinEligibility:
    can_spin: bool
    next_spin_at: datetime | None
    has_retry_prize: bool
    retry_prize_id: str | None = None


@dataclass(frozen=True)
class SpinResult:
    reward: SpinWheelReward
    prize_id: str | None
    message: str


@dataclass(frozen=True)
class TokenActivation:
    prize_id: str
    multiplier: int
    message: str


def select_reward_by_probability(
    rewards: Sequence[SpinWheelReward],
    rng: random.Random | None = None,
) -> SpinWheelReward:
    """Weighted pick by ``probability``. Zero total weight picks the first reward."""
    if not rewards:
        msg = "No rewards available"
        raise ValueError(msg)

    total = sum(r.probability for r in rewards)
    if total <= 0:
        return rewards[0]

    roll = (rng or random).random() * total
    cumulative = 0.0
    for reward in rewards:
        cumulative += reward.probability
        if roll <= cumulative:
            return reward
    # Float accumulation can fall just short of the roll.
    return rewards[-1]


async def _find_retry_prize(db: AsyncSession, profile_id: str) -> ActiveSpinPrize | None:
    with store_access("find_retry_prize"):
        result = await db.execute(
            select(ActiveSpinPrize)
            .where(
                ActiveSpinPrize.profile_id == profile_id,
                ActiveSpinPrize.prize_type == PrizeType.FREE_RETRY_SPIN,
                ActiveSpinPrize.is_active.is_(True),
                ActiveSpinPrize.is_claimed.is_(False),
            )
            .order_by(ActiveSpinPrize.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()


async def _last_spin_at(db: AsyncSession, profile_id: str) -> datetime | None:
    with store_access("last_spin_at"):
        result = await db.execute(
            select(func.max(SpinWheelHistory.spun_at)).where(SpinWheelHistory.profile_id == profile_id)
        )
        return result.scalar_one_or_none()


def _next_spin_at(last_spin: datetime | None, now: datetime) -> datetime | None:
    if last_spin is None:
        return None
    next_at = last_spin + timedelta(hours=get_settings().spin_cooldown_hours)
    return next_at if now < next_at else None


async def can_spin(db: AsyncSession, profile_id: str, now: datetime | None = None) -> SpinEligibility:
    now = now or datetime.now(timezone.utc)
    profile = await resolve_profile(db, profile_id)

    retry = await _find_retry_prize(db, profile.id)
    if retry is not None:
        return SpinEligibility(can_spin=True, next_spin_at=None, has_retry_prize=True, retry_prize_id=retry.id)

    next_at = _next_spin_at(await _last_spin_at(db, profile.id), now)
    return SpinEligibility(can_spin=next_at is None, next_spin_at=next_at, has_retry_prize=False)


async def _conditional_claim(
    db: AsyncSession,
    prize_id: str,
    now: datetime,
    *,
    deactivate: bool = False,
) -> None:
    values: dict[str, object] = {"is_claimed": True, "claimed_at": now}
    if deactivate:
        values["is_active"] = False
    with store_access("claim_prize"):
        result = await db.execute(
            update(ActiveSpinPrize)
            .where(
                ActiveSpinPrize.id == prize_id,
                ActiveSpinPrize.is_claimed.is_(False),
                ActiveSpinPrize.is_active.is_(True),
            )
            .values(**values)
            .execution_options(synchronize_session="evaluate")
        )
    if result.rowcount == 0:
        logger.info("prize_claim_conflict", prize_id=prize_id)
        raise ConcurrentClaimConflict(prize_id)


async def _grant_prize(
    db: AsyncSession,
    profile: Profile,
    reward: SpinWheelReward,
    now: datetime,
) -> ActiveSpinPrize | None:
    """Materialise the won reward. BONUS_VOTES credits the profile directly.

    The credit is a single ``available_votes = available_votes + n`` UPDATE so a
    concurrent vote spending credits is never overwritten.
    """
    settings = get_settings()
    reward_type = reward.reward_type

    if reward_type == PrizeType.BONUS_VOTES:
        await db.execute(
            update(Profile)
            .where(Profile.id == profile.id)
            .values(available_votes=Profile.available_votes + (reward.reward_value or DEFAULT_BONUS_VOTES))
            .execution_options(synchronize_session=False)
        )
        await db.refresh(profile, ["available_votes"])
        return None

    prize = ActiveSpinPrize(
        profile_id=profile.id,
        prize_type=reward_type,
        prize_value=reward.reward_value,
        is_active=True,
        is_claimed=False,
    )
    if reward_type == PrizeType.VOTE_MULTIPLIER:
        days = reward.reward_value or DEFAULT_MULTIPLIER_DAYS
        prize.expires_at = now + timedelta(days=days)
        prize.is_claimed = True
        prize.claimed_at = now
    elif reward_type == PrizeType.VOTE_MULTIPLIER_TOKEN:
        prize.prize_value = reward.reward_value or settings.multiplier_token_default
    elif reward_type == PrizeType.FREE_RETRY_SPIN:
        prize.prize_value = 1
    elif reward_type == PrizeType.MAGAZINE_FOLLOW_BACK:
        days = reward.reward_value or DEFAULT_FOLLOW_BACK_DAYS
        prize.prize_value = days
        prize.expires_at = now + timedelta(days=days)
    elif reward_type == PrizeType.EXCLUSIVE_BADGE:
        prize.is_claimed = True
        prize.claimed_at = now
    elif reward_type not in MANUAL_CLAIM_TYPES:
        logger.warning("unknown_reward_type", reward_type=reward_type, reward_id=reward.id)

    db.add(prize)
    return prize


async def spin(
    db: AsyncSession,
    profile_id: str,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> SpinResult:
    now = now or datetime.now(timezone.utc)
    profile = await resolve_profile(db, profile_id)

    retry = await _find_retry_prize(db, profile.id)
    if retry is not None:
        await _conditional_claim(db, retry.id, now, deactivate=True)
    else:
        next_at = _next_spin_at(await _last_spin_at(db, profile.id), now)
        if next_at is not None:
            raise CooldownActive(f"You can spin again at {next_at.isoformat()}", next_at)

    rewards = await list_rewards(db)
    if not rewards:
        raise ValidationError("No rewards available")

    reward = select_reward_by_probability(rewards, rng)

    with store_access("spin"):
        db.add(SpinWheelHistory(
            profile_id=profile.id,
            reward_id=reward.id,
            reward_name=reward.name,
            reward_type=reward.reward_type,
            spun_at=now,
        ))
        prize = await _grant_prize(db, profile, reward, now)
        await db.flush()

    logger.info(
        "spin_prize_granted",
        profile_id=profile.id,
        reward_type=reward.reward_type,
        prize_id=prize.id if prize else None,
        used_retry=retry is not None,
    )
    return SpinResult(reward=reward, prize_id=prize.id if prize else None, message=reward.popup_message)


async def _get_prize(db: AsyncSession, prize_id: str) -> ActiveSpinPrize:
    with store_access("get_prize"):
        prize = await db.get(ActiveSpinPrize, prize_id)
    if prize is None:
        raise NotFoundError("Prize")
    return prize


def _is_expired(prize: ActiveSpinPrize, now: datetime) -> bool:
    return prize.expires_at is not None and prize.expires_at < now


async def claim_prize(db: AsyncSession, prize_id: str, now: datetime | None = None) -> ActiveSpinPrize:
    """Mark a prize claimed. Badges are idempotent; everything else claims once."""
    now = now or datetime.now(timezone.utc)
    prize = await _get_prize(db, prize_id)

    if prize.prize_type == PrizeType.EXCLUSIVE_BADGE:
        if _is_expired(prize, now):
            raise ValidationError("Prize has expired")
        prize.is_claimed = True
        prize.is_active = True
        prize.claimed_at = prize.claimed_at or now
        with store_access("claim_badge"):
            await db.flush()
        return prize

    if prize.is_claimed:
        raise ConcurrentClaimConflict(prize_id)
    if _is_expired(prize, now):
        raise ValidationError("Prize has expired")

    await _conditional_claim(db, prize_id, now)
    with store_access("claim_prize_refresh"):
        await db.refresh(prize)
    logger.info("prize_claimed", prize_id=prize_id, prize_type=prize.prize_type)
    return prize


async def _validate_token(db: AsyncSession, prize_id: str, now: datetime) -> ActiveSpinPrize:
    token = await _get_prize(db, prize_id)
    if token.prize_type != PrizeType.VOTE_MULTIPLIER_TOKEN:
        raise ValidationError("Invalid token type")
    if token.is_claimed or not token.is_active:
        raise ConcurrentClaimConflict(prize_id, "Token has already been used")
    if _is_expired(token, now):
        raise ValidationError("Token has expired")
    return token


async def activate_multiplier_token(
    db: AsyncSession,
    profile_id: str,
    token_id: str,
    now: datetime | None = None,
) -> TokenActivation:
    """Check that the token is usable by this profile.

    The token stays unclaimed: the next credit vote consumes it.
    """
    now = now or datetime.now(timezone.utc)
    profile = await resolve_profile(db, profile_id)
    token = await _validate_token(db, token_id, now)
    if token.profile_id != profile.id:
        raise ValidationError("Token does not belong to this profile")

    multiplier = token.prize_value or get_settings().multiplier_token_default
    return TokenActivation(
        prize_id=token.id,
        multiplier=multiplier,
        message=f"Multiplier token activated! Your next vote will be multiplied by {multiplier}x",
    )


async def consume_multiplier_token(
    db: AsyncSession,
    prize_id: str,
    now: datetime | None = None,
) -> int:
    """Claim a token for one vote and return its factor."""
    now = now or datetime.now(timezone.utc)
    token = await _validate_token(db, prize_id, now)
    await _conditional_claim(db, prize_id, now)
    logger.info("multiplier_token_consumed", prize_id=prize_id, profile_id=token.profile_id)
    return token.prize_value or get_settings().multiplier_token_default


async def list_active_prizes(
    db: AsyncSession,
    profile_id: str,
    include_expired: bool = False,
    now: datetime | None = None,
) -> list[ActiveSpinPrize]:
    now = now or datetime.now(timezone.utc)
    profile = await resolve_profile(db, profile_id)

    query = select(ActiveSpinPrize).where(
        ActiveSpinPrize.profile_id == profile.id,
        ActiveSpinPrize.is_active.is_(True),
    )
    if not include_expired:
        query = query.where(or_(ActiveSpinPrize.expires_at.is_(None), ActiveSpinPrize.expires_at > now))

    with store_access("list_active_prizes"):
        result = await db.execute(query.order_by(ActiveSpinPrize.created_at.desc()))
        return list(result.scalars().all())


async def spin_history(
    db: AsyncSession,
    profile_id: str,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[SpinWheelHistory], dict]:
    profile = await resolve_profile(db, profile_id)

    with store_access("spin_history"):
        total = (await db.execute(
            select(func.count()).select_from(SpinWheelHistory)
            .where(SpinWheelHistory.profile_id == profile.id)
        )).scalar_one()
        result = await db.execute(
            select(SpinWheelHistory)
            .where(SpinWheelHistory.profile_id == profile.id)
            .order_by(SpinWheelHistory.spun_at.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
        )
        rows = list(result.scalars().all())

    return rows, pagination_metadata(total, page, limit)


async def list_rewards(db: AsyncSession) -> list[SpinWheelReward]:
    with store_access("list_rewards"):
        result = await db.execute(
            select(SpinWheelReward)
            .where(SpinWheelReward.is_active.is_(True))
            .order_by(SpinWheelReward.sort_order)
        )
        return list(result.scalars().all())
