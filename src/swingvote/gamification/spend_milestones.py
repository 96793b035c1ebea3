"""Free spins earned by cumulative spend of one voter on one model.

Milestones sit at 50, 100 and then every 100 (200, 300, ...).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import store_access
from swingvote.db.models import ActiveSpinPrize, PrizeType, VoterModelMilestone
from swingvote.errors import DataAccessError

logger = structlog.get_logger()

FIRST_MILESTONE = 50
SECOND_MILESTONE = 100
MILESTONE_STEP = 100


@dataclass(frozen=True)
class SpinGrant:
    granted: bool
    milestone_reached: int | None = None


@dataclass(frozen=True)
class SpendProgress:
    total_spent: float
    last_milestone_reached: int | None
    next_milestone: int
    progress_to_next: float


def next_spend_milestone(spent: float) -> int:
    """Milestone the spend is heading for: 50, 100, then the next multiple of 100.

    An exact multiple of 100 is its own next milestone, so ``progress_to_next``
    reads 100% at 100, 200, ...
    """
    if spent < FIRST_MILESTONE:
        return FIRST_MILESTONE
    if spent < SECOND_MILESTONE:
        return SECOND_MILESTONE
    return math.ceil(spent / MILESTONE_STEP) * MILESTONE_STEP


def unreached_spend_milestones(spent: float, last_reached: int | None) -> list[int]:
    """Milestones at or below ``spent`` that are above ``last_reached``."""
    floor = last_reached or 0
    reached = []
    for milestone in (FIRST_MILESTONE, SECOND_MILESTONE):
        if floor < milestone <= spent:
            reached.append(milestone)

    if floor >= SECOND_MILESTONE:
        milestone = floor + MILESTONE_STEP
    else:
        milestone = SECOND_MILESTONE + MILESTONE_STEP
    while milestone <= spent:
        reached.append(milestone)
        milestone += MILESTONE_STEP
    return reached


async def _get_tracker(db: AsyncSession, voter_id: str, model_id: str) -> VoterModelMilestone | None:
    with store_access("get_spend_tracker"):
        result = await db.execute(
            select(VoterModelMilestone).where(
                VoterModelMilestone.voter_id == voter_id,
                VoterModelMilestone.model_id == model_id,
            )
        )
        return result.scalar_one_or_none()


async def check_and_grant_milestone_spins(
    db: AsyncSession,
    voter_id: str,
    model_id: str,
    amount: float,
    now: datetime | None = None,
) -> SpinGrant:
    """Add ``amount`` to the pair's spend and grant a FREE_RETRY_SPIN per new milestone.

    Runs as a side effect of payment completion inside a savepoint. Store
    failures roll the savepoint back, get logged, and are reported as
    "not granted"; the caller's transaction stays usable.
    """
    now = now or datetime.now(timezone.utc)
    milestones: list[int] = []
    try:
        async with db.begin_nested():
            tracker = await _get_tracker(db, voter_id, model_id)
            with store_access("grant_milestone_spins"):
                if tracker is None:
                    tracker = VoterModelMilestone(voter_id=voter_id, model_id=model_id, total_spent=0.0)
                    db.add(tracker)
                tracker.total_spent = (tracker.total_spent or 0.0) + amount

                milestones = unreached_spend_milestones(tracker.total_spent, tracker.last_milestone_reached)
                for _ in milestones:
                    db.add(ActiveSpinPrize(
                        profile_id=voter_id,
                        prize_type=PrizeType.FREE_RETRY_SPIN,
                        prize_value=1,
                        is_active=True,
                        is_claimed=False,
                    ))
                if milestones:
                    tracker.last_milestone_reached = max(milestones)
                    tracker.last_milestone_reached_at = now
                await db.flush()
    except DataAccessError:
        logger.exception("milestone_spin_grant_failed", voter_id=voter_id, model_id=model_id)
        return SpinGrant(granted=False)

    if not milestones:
        return SpinGrant(granted=False)

    logger.info(
        "milestone_spins_granted",
        voter_id=voter_id,
        model_id=model_id,
        milestones=milestones,
        total_spent=tracker.total_spent,
    )
    return SpinGrant(granted=True, milestone_reached=max(milestones))


async def get_spend_progress(db: AsyncSession, voter_id: str, model_id: str) -> SpendProgress:
    tracker = await _get_tracker(db, voter_id, model_id)
    if tracker is None:
        return SpendProgress(
            total_spent=0.0,
            last_milestone_reached=None,
            next_milestone=FIRST_MILESTONE,
            progress_to_next=0.0,
        )
    next_milestone = next_spend_milestone(tracker.total_spent)
    return SpendProgress(
        total_spent=tracker.total_spent,
        last_milestone_reached=tracker.last_milestone_reached,
        next_milestone=next_milestone,
        progress_to_next=min(tracker.total_spent / next_milestone * 100, 100.0),
    )
