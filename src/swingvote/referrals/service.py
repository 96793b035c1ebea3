"""Referral codes, sign-up attribution, per-user stats and the leaderboard.

Every counter change is a single conditional or relative UPDATE so two sign-ups
landing at once each count, and a user can only ever be attributed once.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.config import get_settings
from swingvote.database import store_access
from swingvote.db.models import Profile, User
from swingvote.errors import NotFoundError, ValidationError
from swingvote.gamification.progress import round_half_up
from swingvote.gamification.thresholds import REFERRAL_TIERS, ReferralTier, current_tier, next_tier
from swingvote.pagination import page_offset, pagination_metadata

logger = structlog.get_logger()

RANDOM_CODE_LENGTH = 10
SHARE_SUBJECT = "Join me on Swing Magazine!"


@dataclass(frozen=True)
class ReferralCode:
    referral_code: str
    referral_link: str
    created: bool


@dataclass(frozen=True)
class TierSummary:
    count: int
    name: str
    reward: str


@dataclass(frozen=True)
class TierProgress:
    current: int
    needed: int
    remaining: int
    percentage: int


@dataclass(frozen=True)
class ReferredUser:
    id: str
    name: str | None
    joined_at: datetime


@dataclass(frozen=True)
class ReferralStats:
    referral_code: str | None
    referral_link: str | None
    total_referrals: int
    referrals: list[ReferredUser]
    current_tier: TierSummary | None
    next_tier: TierSummary | None
    progress: TierProgress | None


@dataclass(frozen=True)
class ReferralResult:
    referrer_id: str
    referrer_new_count: int
    bonus_votes_awarded: int
    tier_reached: str | None


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user_id: str
    profile_id: str | None
    username: str | None
    name: str | None
    profile_image: str | None
    referral_code: str | None
    total_referrals: int
    current_tier: TierSummary | None


@dataclass(frozen=True)
class SharingLinks:
    referral_code: str
    referral_link: str
    default_message: str
    sharing_urls: dict[str, str]


def referral_link(code: str) -> str:
    base = get_settings().frontend_base_url.rstrip("/")
    return f"{base}/register?ref={code}"


def tier_summary(tier: ReferralTier | None) -> TierSummary | None:
    if tier is None:
        return None
    return TierSummary(count=tier.min_referrals, name=tier.tier_name, reward=tier.reward)


def tier_progress(referral_count: int) -> TierProgress | None:
    """Progress towards the next tier; None once the top tier is reached."""
    upcoming = next_tier(referral_count)
    if upcoming is None:
        return None
    return TierProgress(
        current=referral_count,
        needed=upcoming.min_referrals,
        remaining=upcoming.min_referrals - referral_count,
        percentage=round_half_up(referral_count / upcoming.min_referrals * 100),
    )


def tier_reached_at(referral_count: int) -> ReferralTier | None:
    """The tier whose lower bound is exactly this count, i.e. the one just entered."""
    for tier in REFERRAL_TIERS:
        if tier.min_referrals == referral_count:
            return tier
    return None


def sharing_urls(link: str, message: str) -> dict[str, str]:
    text = quote(message, safe="")
    url = quote(link, safe="")
    return {
        "twitter": f"https://twitter.com/intent/tweet?text={text}",
        "facebook": f"https://www.facebook.com/sharer/sharer.php?u={url}&quote={text}",
        "whatsapp": f"https://wa.me/?text={text}",
        "telegram": f"https://t.me/share/url?url={url}&text={text}",
        "linkedin": f"https://www.linkedin.com/sharing/share-offsite/?url={url}&summary={text}",
        "email": f"mailto:?subject={quote(SHARE_SUBJECT, safe='')}&body={text}",
    }


async def _get_user(db: AsyncSession, user_id: str) -> User:
    with store_access("get_user"):
        user = await db.get(User, user_id, populate_existing=True)
    if user is None:
        raise NotFoundError("User")
    return user


async def _code_taken(db: AsyncSession, code: str) -> bool:
    with store_access("find_referral_code"):
        return await db.scalar(select(User.id).where(User.referral_code == code)) is not None


async def generate_referral_code(db: AsyncSession, user_id: str) -> ReferralCode:
    """Return the user's code, creating one on first call.

    New codes are the username when it is free, otherwise a random URL-safe token.
    """
    user = await _get_user(db, user_id)
    if user.referral_code:
        return ReferralCode(user.referral_code, referral_link(user.referral_code), created=False)

    code = user.username
    if not code or await _code_taken(db, code):
        code = secrets.token_urlsafe(RANDOM_CODE_LENGTH)[:RANDOM_CODE_LENGTH]

    with store_access("set_referral_code"):
        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.referral_code.is_(None))
            .values(referral_code=code)
            .execution_options(synchronize_session=False)
        )
    if result.rowcount == 0:
        # a concurrent request assigned one first
        user = await _get_user(db, user_id)
        return ReferralCode(user.referral_code, referral_link(user.referral_code), created=False)

    logger.info("referral_code_created", user_id=user_id, referral_code=code)
    return ReferralCode(code, referral_link(code), created=True)


async def share_referral(
    db: AsyncSession,
    user_id: str,
    custom_message: str | None = None,
) -> SharingLinks:
    code = await generate_referral_code(db, user_id)
    message = custom_message or f"Join me on Swing Magazine! Use my referral link to get started: {code.referral_link}"
    return SharingLinks(
        referral_code=code.referral_code,
        referral_link=code.referral_link,
        default_message=message,
        sharing_urls=sharing_urls(code.referral_link, message),
    )


async def process_referral(db: AsyncSession, user_id: str, referral_code: str) -> ReferralResult:
    """Attribute a new sign-up to the owner of ``referral_code`` and reward them."""
    new_user = await _get_user(db, user_id)
    with store_access("find_referrer"):
        referrer = await db.scalar(select(User).where(User.referral_code == referral_code))
    if referrer is None:
        raise NotFoundError("Referral code")
    if referrer.id == new_user.id:
        raise ValidationError("Users cannot refer themselves")

    bonus = get_settings().referral_bonus_votes
    with store_access("process_referral"):
        linked = await db.execute(
            update(User)
            .where(User.id == user_id, User.referred_by_id.is_(None))
            .values(referred_by_id=referrer.id)
            .execution_options(synchronize_session=False)
        )
        if linked.rowcount == 0:
            raise ValidationError("User already has a referrer")

        await db.execute(
            update(User)
            .where(User.id == referrer.id)
            .values(referral_count=User.referral_count + 1)
            .execution_options(synchronize_session=False)
        )
        credited = await db.execute(
            update(Profile)
            .where(Profile.user_id == referrer.id)
            .values(available_votes=Profile.available_votes + bonus)
            .execution_options(synchronize_session=False)
        )
        new_count = await db.scalar(select(User.referral_count).where(User.id == referrer.id))

    awarded = bonus if credited.rowcount else 0
    reached = tier_reached_at(new_count)
    logger.info(
        "referral_processed",
        user_id=user_id,
        referrer_id=referrer.id,
        referral_count=new_count,
        bonus_votes=awarded,
    )
    if reached is not None:
        logger.info("referral_tier_reached", referrer_id=referrer.id, tier=reached.tier_name, count=new_count)

    return ReferralResult(
        referrer_id=referrer.id,
        referrer_new_count=new_count,
        bonus_votes_awarded=awarded,
        tier_reached=reached.tier_name if reached else None,
    )


async def get_referral_stats(db: AsyncSession, user_id: str) -> ReferralStats:
    user = await _get_user(db, user_id)
    with store_access("list_referred_users"):
        result = await db.execute(
            select(User.id, User.name, User.created_at)
            .where(User.referred_by_id == user_id)
            .order_by(User.created_at.asc())
        )
        referrals = [ReferredUser(id=row.id, name=row.name, joined_at=row.created_at) for row in result]

    count = user.referral_count or 0
    return ReferralStats(
        referral_code=user.referral_code,
        referral_link=referral_link(user.referral_code) if user.referral_code else None,
        total_referrals=count,
        referrals=referrals,
        current_tier=tier_summary(current_tier(count)),
        next_tier=tier_summary(next_tier(count)),
        progress=tier_progress(count),
    )


async def referral_leaderboard(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[LeaderboardEntry], dict]:
    """Users with at least one referral, most referrals first."""
    where = User.referral_count > 0
    with store_access("referral_leaderboard"):
        total = (await db.execute(select(func.count()).select_from(User).where(where))).scalar_one()
        result = await db.execute(
            select(User, Profile.id.label("profile_id"))
            .outerjoin(Profile, Profile.user_id == User.id)
            .where(where)
            .order_by(User.referral_count.desc(), User.created_at.asc(), User.id)
            .offset(page_offset(page, limit))
            .limit(limit)
        )
        rows = result.all()

    offset = page_offset(page, limit)
    entries = [
        LeaderboardEntry(
            rank=offset + index + 1,
            user_id=user.id,
            profile_id=profile_id,
            username=user.username,
            name=user.name,
            profile_image=user.image,
            referral_code=user.referral_code,
            total_referrals=user.referral_count,
            current_tier=tier_summary(current_tier(user.referral_count)),
        )
        for index, (user, profile_id) in enumerate(rows)
    ]
    return entries, pagination_metadata(total, page, limit)
