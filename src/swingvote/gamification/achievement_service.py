"""Achievement badges: catalog, per-profile status and manual unlocks.

Only VOTING badges have computed progress, based on the number of vote rows
the profile has received (not the summed vote count used by milestones).
Unlocked badges report the progress stored when they were unlocked.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import store_access
from swingvote.db.models import Achievement, AchievementCategory, AchievementTier, ProfileAchievement, Vote
from swingvote.errors import NotFoundError, ValidationError
from swingvote.gamification.progress import clamp_percent, percent_of
from swingvote.pagination import page_offset, pagination_metadata
from swingvote.profiles import require_profile

logger = structlog.get_logger()

DEFAULT_UNLOCK_PROGRESS = 100

_TIER_RANK = case(
    {tier.value: rank for rank, tier in enumerate(AchievementTier)},
    value=Achievement.tier,
    else_=len(AchievementTier),
)
_CATALOG_ORDER = (_TIER_RANK, Achievement.requirement.asc().nulls_last(), Achievement.code)


@dataclass(frozen=True)
class AchievementData:
    code: str
    name: str
    description: str
    icon: str
    category: str
    tier: str = AchievementTier.BRONZE
    requirement: int | None = None
    badge_image: str | None = None


@dataclass(frozen=True)
class AchievementStatus:
    id: str
    code: str
    name: str
    description: str
    icon: str
    badge_image: str | None
    category: str
    requirement: int | None
    tier: str
    is_unlocked: bool
    unlocked_at: datetime | None
    progress: int


def achievement_status(
    achievement: Achievement,
    unlocked: ProfileAchievement | None,
    votes_received: int,
) -> AchievementStatus:
    """Merge a badge definition with a profile's unlock record, if any."""
    if unlocked is not None:
        progress = unlocked.progress
    elif achievement.requirement and achievement.category == AchievementCategory.VOTING:
        progress = clamp_percent(percent_of(votes_received, achievement.requirement))
    else:
        progress = 0

    return AchievementStatus(
        id=achievement.id,
        code=achievement.code,
        name=achievement.name,
        description=achievement.description,
        icon=achievement.icon,
        badge_image=achievement.badge_image,
        category=achievement.category,
        requirement=achievement.requirement,
        tier=achievement.tier,
        is_unlocked=unlocked is not None,
        unlocked_at=unlocked.unlocked_at if unlocked is not None else None,
        progress=progress,
    )


def _parse_category(category: str | None) -> str | None:
    if category is None:
        return None
    try:
        return AchievementCategory(category.upper())
    except ValueError:
        raise ValidationError(f"Unknown achievement category: {category}") from None


async def list_achievements(db: AsyncSession, page: int = 1, limit: int = 20) -> tuple[list[Achievement], dict]:
    """The whole catalog, lowest tier first."""
    with store_access("list_achievements"):
        total = (await db.execute(select(func.count()).select_from(Achievement))).scalar_one()
        result = await db.execute(
            select(Achievement).order_by(*_CATALOG_ORDER).offset(page_offset(page, limit)).limit(limit)
        )
        rows = list(result.scalars().all())
    return rows, pagination_metadata(total, page, limit)


async def count_votes_received(db: AsyncSession, profile_id: str) -> int:
    with store_access("count_votes_received"):
        result = await db.execute(select(func.count()).select_from(Vote).where(Vote.votee_id == profile_id))
        return int(result.scalar_one())


async def _unlock_records(db: AsyncSession, profile_id: str) -> Mapping[str, ProfileAchievement]:
    with store_access("profile_achievement_records"):
        result = await db.execute(select(ProfileAchievement).where(ProfileAchievement.profile_id == profile_id))
        return {row.achievement_id: row for row in result.scalars()}


async def list_profile_achievements(
    db: AsyncSession,
    profile_id: str,
    category: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[AchievementStatus], dict]:
    await require_profile(db, profile_id)
    category = _parse_category(category)
    where = [Achievement.category == category] if category else []

    with store_access("list_profile_achievements"):
        total = (await db.execute(select(func.count()).select_from(Achievement).where(*where))).scalar_one()
        result = await db.execute(
            select(Achievement)
            .where(*where)
            .order_by(*_CATALOG_ORDER)
            .offset(page_offset(page, limit))
            .limit(limit)
        )
        achievements = list(result.scalars().all())

    records = await _unlock_records(db, profile_id)
    votes_received = await count_votes_received(db, profile_id)
    statuses = [achievement_status(a, records.get(a.id), votes_received) for a in achievements]
    return statuses, pagination_metadata(total, page, limit)


async def create_achievement(db: AsyncSession, data: AchievementData) -> Achievement:
    with store_access("find_achievement_code"):
        existing = await db.scalar(select(Achievement.id).where(Achievement.code == data.code))
    if existing is not None:
        raise ValidationError("Achievement code already exists")

    achievement = Achievement(**asdict(data))
    with store_access("create_achievement"):
        try:
            async with db.begin_nested():
                db.add(achievement)
                await db.flush()
        except IntegrityError:
            raise ValidationError("Achievement code already exists") from None

    logger.info("achievement_created", achievement_id=achievement.id, code=achievement.code, tier=achievement.tier)
    return achievement


async def unlock_achievement(
    db: AsyncSession,
    profile_id: str,
    achievement_id: str,
    progress: int = DEFAULT_UNLOCK_PROGRESS,
    now: datetime | None = None,
) -> AchievementStatus:
    """Grant a badge to a profile. A second unlock of the same badge is rejected."""
    now = now or datetime.now(timezone.utc)
    await require_profile(db, profile_id)
    with store_access("get_achievement"):
        achievement = await db.get(Achievement, achievement_id)
    if achievement is None:
        raise NotFoundError("Achievement")

    with store_access("find_profile_achievement"):
        existing = await db.scalar(
            select(ProfileAchievement.id).where(
                ProfileAchievement.profile_id == profile_id,
                ProfileAchievement.achievement_id == achievement_id,
            )
        )
    if existing is not None:
        raise ValidationError("Achievement already unlocked")

    record = ProfileAchievement(
        profile_id=profile_id,
        achievement_id=achievement_id,
        unlocked_at=now,
        progress=progress,
    )
    with store_access("unlock_achievement"):
        try:
            async with db.begin_nested():
                db.add(record)
                await db.flush()
        except IntegrityError:
            raise ValidationError("Achievement already unlocked") from None

    logger.info("achievement_unlocked", profile_id=profile_id, code=achievement.code, progress=progress)
    return achievement_status(achievement, record, 0)

