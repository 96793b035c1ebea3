"""Vote-count milestones for model profiles."""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import store_access
from swingvote.db.models import Milestone, MilestoneType, Vote
from swingvote.gamification.progress import ProgressReport, compute_progress, crossed_thresholds
from swingvote.gamification.thresholds import VOTE_MILESTONE_CONFIGS, ThresholdConfig
from swingvote.pagination import page_offset, pagination_metadata
from swingvote.profiles import require_profile

logger = structlog.get_logger()


async def get_vote_total(db: AsyncSession, profile_id: str) -> int:
    """Sum of vote counts received by the profile (0 when none)."""
    with store_access("get_vote_total"):
        result = await db.execute(
            select(func.coalesce(func.sum(Vote.count), 0)).where(Vote.votee_id == profile_id)
        )
        return int(result.scalar_one() or 0)


async def get_milestone_progress(
    db: AsyncSession,
    profile_id: str,
    configs: Sequence[ThresholdConfig] = VOTE_MILESTONE_CONFIGS,
) -> ProgressReport:
    await require_profile(db, profile_id)
    total = await get_vote_total(db, profile_id)

    with store_access("get_milestone_progress"):
        result = await db.execute(
            select(Milestone.threshold, Milestone.created_at).where(
                Milestone.profile_id == profile_id,
                Milestone.type == MilestoneType.VOTE_COUNT,
            )
        )
        unlocked = {row.threshold: row.created_at for row in result}

    return compute_progress(total, configs, unlocked)


async def list_profile_milestones(
    db: AsyncSession,
    profile_id: str,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Milestone], dict]:
    """Persisted milestone rows, newest first."""
    await require_profile(db, profile_id)

    with store_access("list_profile_milestones"):
        total = (await db.execute(
            select(func.count()).select_from(Milestone).where(Milestone.profile_id == profile_id)
        )).scalar_one()
        result = await db.execute(
            select(Milestone)
            .where(Milestone.profile_id == profile_id)
            .order_by(Milestone.created_at.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
        )
        rows = list(result.scalars().all())

    return rows, pagination_metadata(total, page, limit)


async def _recorded_thresholds(db: AsyncSession, profile_id: str) -> set[int]:
    with store_access("recorded_thresholds"):
        result = await db.execute(
            select(Milestone.threshold).where(
                Milestone.profile_id == profile_id,
                Milestone.type == MilestoneType.VOTE_COUNT,
            )
        )
        return set(result.scalars().all())


async def record_crossed_milestones(
    db: AsyncSession,
    profile_id: str,
    configs: Sequence[ThresholdConfig] = VOTE_MILESTONE_CONFIGS,
) -> list[Milestone]:
    """Persist an audit row for each newly crossed threshold.

    Unlock state never reads these rows back; they only supply ``unlocked_at``.
    Each row goes in under its own savepoint, so a concurrent writer that got
    there first (``uq_milestone``) only skips that threshold.
    """
    total = await get_vote_total(db, profile_id)
    crossed = crossed_thresholds(total, configs)
    if not crossed:
        return []

    existing = await _recorded_thresholds(db, profile_id)
    created = []
    for threshold in crossed:
        if threshold in existing:
            continue
        milestone = Milestone(
            profile_id=profile_id,
            type=MilestoneType.VOTE_COUNT,
            threshold=threshold,
            current_value=total,
        )
        with store_access("record_crossed_milestones"):
            try:
                async with db.begin_nested():
                    db.add(milestone)
                    await db.flush()
            except IntegrityError:
                logger.info("milestone_already_recorded", profile_id=profile_id, threshold=threshold)
                continue
        created.append(milestone)
        logger.info("milestone_reached", profile_id=profile_id, threshold=threshold, total=total)
    return created
