"""Profile lookups shared by the domain services."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import store_access
from swingvote.db.models import Profile
from swingvote.errors import NotFoundError


async def require_profile(db: AsyncSession, profile_id: str) -> Profile:
    with store_access("require_profile"):
        profile = await db.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError("Profile")
    return profile


async def resolve_profile(db: AsyncSession, profile_or_user_id: str) -> Profile:
    """Accept either a profile id or the owning user's id.

    Clients of the spin wheel historically send the user id.
    """
    with store_access("resolve_profile"):
        profile = await db.get(Profile, profile_or_user_id)
        if profile is None:
            result = await db.execute(select(Profile).where(Profile.user_id == profile_or_user_id))
            profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Profile")
    return profile
