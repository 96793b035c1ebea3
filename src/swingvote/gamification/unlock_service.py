"""Exclusive content unlocks earned by vote totals."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import store_access
from swingvote.db.models import UnlockedContent
from swingvote.errors import ValidationError
from swingvote.gamification.milestone_service import get_vote_total
from swingvote.gamification.progress import UnlockRecord, UnlockReport, compute_unlock_progress
from swingvote.gamification.thresholds import UNLOCK_TIERS, UnlockTier
from swingvote.pagination import page_offset, pagination_metadata
from swingvote.profiles import require_profile

logger = structlog.get_logger()


@dataclass(frozen=True)
class UnlockContentData:
    profile_id: str
    content_type: str
    title: str
    vote_threshold: int
    description: str | None = None
    content_url: str | None = None


@dataclass(frozen=True)
class UnlockEligibility:
    is_eligible: bool
    current_votes: int
    required_votes: int
    votes_needed: int
    unlocked_content: UnlockedContent | None


async def get_unlock_progress(
    db: AsyncSession,
    profile_id: str,
    tiers: Sequence[UnlockTier] = UNLOCK_TIERS,
) -> UnlockReport:
    await require_profile(db, profile_id)
    total = await get_vote_total(db, profile_id)

    with store_access("get_unlock_progress"):
        result = await db.execute(
            select(UnlockedContent).where(
                UnlockedContent.profile_id == profile_id,
                UnlockedContent.is_active.is_(True),
            )
        )
        records = [
            UnlockRecord(
                content_type=row.content_type,
                vote_threshold=row.vote_threshold,
                unlocked_at=row.unlocked_at,
                content_url=row.content_url,
            )
            for row in result.scalars()
        ]

    return compute_unlock_progress(total, tiers, records)


async def list_profile_unlocks(
    db: AsyncSession,
    profile_id: str,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[UnlockedContent], dict]:
    await require_profile(db, profile_id)
    where = (UnlockedContent.profile_id == profile_id, UnlockedContent.is_active.is_(True))

    with store_access("list_profile_unlocks"):
        total = (await db.execute(
            select(func.count()).select_from(UnlockedContent).where(*where)
        )).scalar_one()
        result = await db.execute(
            select(UnlockedContent)
            .where(*where)
            .order_by(UnlockedContent.unlocked_at.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
        )
        rows = list(result.scalars().all())

    return rows, pagination_metadata(total, page, limit)


async def _find_unlock(
    db: AsyncSession, profile_id: str, content_type: str, vote_threshold: int,
) -> UnlockedContent | None:
    with store_access("find_unlock"):
        result = await db.execute(
            select(UnlockedContent).where(
                UnlockedContent.profile_id == profile_id,
                UnlockedContent.content_type == content_type,
                UnlockedContent.vote_threshold == vote_threshold,
            )
        )
        return result.scalar_one_or_none()


async def create_unlock(db: AsyncSession, data: UnlockContentData) -> UnlockedContent:
    """Insert an unlock row; a duplicate (profile, type, threshold) is a ValidationError.

    The insert runs under a savepoint so losing a race on
    ``uq_unlocked_content`` leaves the caller's transaction usable.
    """
    await require_profile(db, data.profile_id)

    if await _find_unlock(db, data.profile_id, data.content_type, data.vote_threshold):
        raise ValidationError("Content already unlocked for this threshold")

    unlock = UnlockedContent(
        profile_id=data.profile_id,
        content_type=data.content_type,
        title=data.title,
        description=data.description,
        content_url=data.content_url,
        vote_threshold=data.vote_threshold,
    )
    with store_access("create_unlock"):
        try:
            async with db.begin_nested():
                db.add(unlock)
                await db.flush()
        except IntegrityError:
            logger.info(
                "unlock_already_exists",
                profile_id=data.profile_id,
                content_type=data.content_type,
                vote_threshold=data.vote_threshold,
            )
            raise ValidationError("Content already unlocked for this threshold") from None

    logger.info(
        "content_unlocked",
        profile_id=data.profile_id,
        content_type=data.content_type,
        vote_threshold=data.vote_threshold,
    )
    return unlock


async def check_unlock_eligibility(
    db: AsyncSession,
    profile_id: str,
    vote_threshold: int,
    content: UnlockContentData | None = None,
) -> UnlockEligibility:
    """Report eligibility and auto-unlock ``content`` once the threshold is met."""
    await require_profile(db, profile_id)
    total = await get_vote_total(db, profile_id)
    eligible = total >= vote_threshold

    unlocked = None
    if eligible and content is not None:
        unlocked = await _find_unlock(db, profile_id, content.content_type, vote_threshold)
        if unlocked is None:
            try:
                unlocked = await create_unlock(db, content)
            except ValidationError:
                # another request unlocked it between our read and insert
                unlocked = await _find_unlock(db, profile_id, content.content_type, vote_threshold)

    return UnlockEligibility(
        is_eligible=eligible,
        current_votes=total,
        required_votes=vote_threshold,
        votes_needed=max(0, vote_threshold - total),
        unlocked_content=unlocked,
    )
