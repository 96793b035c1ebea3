"""Vote multiplier resolution.

Two sources can raise the weight of a vote:

1. An admin-defined ``VoteMultiplierPeriod`` covering "now" (global baseline).
2. A claimed ``VOTE_MULTIPLIER`` spin-wheel prize on the voter's profile.

They never compound: a voter with an active spin multiplier gets
``max(baseline, 2)``. The 10x ``VOTE_MULTIPLIER_TOKEN`` is a separate,
single-use consumable and is never folded in here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.config import get_settings
from swingvote.database import store_access
from swingvote.db.models import ActiveSpinPrize, PrizeType, VoteMultiplierPeriod

logger = structlog.get_logger()


@dataclass(frozen=True)
class AmbientMultiplier:
    """Passive effect applied to every vote while the prize is live."""

    factor: int


@dataclass(frozen=True)
class ConsumableToken:
    """One-shot effect consumed by a single vote."""

    prize_id: str
    factor: int


RewardEffect = AmbientMultiplier | ConsumableToken


@dataclass(frozen=True)
class MultiplierResult:
    original_votes: int
    multiplier: int
    total_votes: int
    has_active_multiplier: bool


def reward_effect_for(prize: ActiveSpinPrize) -> RewardEffect | None:
    """Map a prize row to the vote effect it carries, if any."""
    settings = get_settings()
    if prize.prize_type == PrizeType.VOTE_MULTIPLIER:
        return AmbientMultiplier(factor=settings.spin_multiplier_value)
    if prize.prize_type == PrizeType.VOTE_MULTIPLIER_TOKEN:
        return ConsumableToken(
            prize_id=prize.id,
            factor=prize.prize_value or settings.multiplier_token_default,
        )
    return None


def _not_expired(now: datetime):
    return or_(ActiveSpinPrize.expires_at.is_(None), ActiveSpinPrize.expires_at > now)


async def get_active_multiplier_period(
    db: AsyncSession, now: datetime | None = None,
) -> VoteMultiplierPeriod | None:
    """Most recently created active period whose window contains ``now``."""
    now = now or datetime.now(timezone.utc)
    with store_access("get_active_multiplier_period"):
        result = await db.execute(
            select(VoteMultiplierPeriod)
            .where(
                VoteMultiplierPeriod.is_active.is_(True),
                VoteMultiplierPeriod.start_time <= now,
                VoteMultiplierPeriod.end_time >= now,
            )
            .order_by(VoteMultiplierPeriod.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


async def _has_spin_multiplier(db: AsyncSession, profile_id: str, now: datetime) -> bool:
    with store_access("has_spin_multiplier"):
        result = await db.execute(
            select(ActiveSpinPrize.id)
            .where(
                ActiveSpinPrize.profile_id == profile_id,
                ActiveSpinPrize.prize_type == PrizeType.VOTE_MULTIPLIER,
                ActiveSpinPrize.is_active.is_(True),
                ActiveSpinPrize.is_claimed.is_(True),
                _not_expired(now),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None


async def resolve_multiplier(
    db: AsyncSession,
    profile_id: str | None = None,
    now: datetime | None = None,
) -> int:
    """Effective multiplier (>= 1) for a vote cast by ``profile_id`` at ``now``."""
    now = now or datetime.now(timezone.utc)

    period = await get_active_multiplier_period(db, now)
    baseline = period.multiplier_times if period else 1

    if profile_id and await _has_spin_multiplier(db, profile_id, now):
        spin_factor = get_settings().spin_multiplier_value
        return max(baseline, spin_factor)

    return baseline


async def apply_multiplier(
    db: AsyncSession,
    raw_count: int,
    profile_id: str | None = None,
    now: datetime | None = None,
) -> MultiplierResult:
    multiplier = await resolve_multiplier(db, profile_id, now)
    return MultiplierResult(
        original_votes=raw_count,
        multiplier=multiplier,
        total_votes=raw_count * multiplier,
        has_active_multiplier=multiplier > 1,
    )


async def get_user_multiplier_token(
    db: AsyncSession,
    profile_id: str,
    now: datetime | None = None,
) -> ActiveSpinPrize | None:
    """Most recent unclaimed, unexpired multiplier token for the profile."""
    now = now or datetime.now(timezone.utc)
    with store_access("get_user_multiplier_token"):
        result = await db.execute(
            select(ActiveSpinPrize)
            .where(
                ActiveSpinPrize.profile_id == profile_id,
                ActiveSpinPrize.prize_type == PrizeType.VOTE_MULTIPLIER_TOKEN,
                ActiveSpinPrize.is_active.is_(True),
                ActiveSpinPrize.is_claimed.is_(False),
                _not_expired(now),
            )
            .order_by(ActiveSpinPrize.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
