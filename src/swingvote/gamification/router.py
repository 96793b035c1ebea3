"""Milestone, content-unlock, achievement and spend-progress endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.database import get_session
from swingvote.gamification.achievement_service import (
    DEFAULT_UNLOCK_PROGRESS,
    AchievementData,
    create_achievement,
    list_achievements,
    list_profile_achievements,
    unlock_achievement,
)
from swingvote.gamification.milestone_service import get_milestone_progress, list_profile_milestones
from swingvote.gamification.schemas import (
    AchievementListResponse,
    AchievementResponse,
    CheckUnlockRequest,
    CreateAchievementRequest,
    CreateUnlockRequest,
    MilestoneListResponse,
    MilestoneProgressResponse,
    ProfileAchievementEntry,
    ProfileAchievementListResponse,
    SpendProgressResponse,
    UnlockAchievementRequest,
    UnlockAchievementResponse,
    UnlockEligibilityResponse,
    UnlockedContentResponse,
    UnlockListResponse,
    UnlockProgressResponse,
)
from swingvote.gamification.spend_milestones import get_spend_progress
from swingvote.gamification.unlock_service import (
    UnlockContentData,
    check_unlock_eligibility,
    create_unlock,
    get_unlock_progress,
    list_profile_unlocks,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Vote milestones ──


@router.get("/milestones/{profile_id}/progress", response_model=MilestoneProgressResponse)
async def milestone_progress(profile_id: str, db: AsyncSession = Depends(get_session)):
    """Progress towards every vote milestone, derived from the live vote total."""
    return MilestoneProgressResponse.model_validate(await get_milestone_progress(db, profile_id))


@router.get("/milestones/{profile_id}", response_model=MilestoneListResponse)
async def milestone_records(
    profile_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    rows, pagination = await list_profile_milestones(db, profile_id, page, limit)
    return MilestoneListResponse.model_validate({"data": rows, "pagination": pagination})


# ── Content unlocks ──


@router.get("/unlocks/{profile_id}/progress", response_model=UnlockProgressResponse)
async def unlock_progress(profile_id: str, db: AsyncSession = Depends(get_session)):
    return UnlockProgressResponse.model_validate(await get_unlock_progress(db, profile_id))


@router.get("/unlocks/{profile_id}", response_model=UnlockListResponse)
async def unlock_records(
    profile_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    rows, pagination = await list_profile_unlocks(db, profile_id, page, limit)
    return UnlockListResponse.model_validate({"data": rows, "pagination": pagination})


@router.post("/unlocks", response_model=UnlockedContentResponse, status_code=201)
async def post_unlock(body: CreateUnlockRequest, db: AsyncSession = Depends(get_session)):
    unlock = await create_unlock(db, UnlockContentData(**body.model_dump()))
    return UnlockedContentResponse.model_validate(unlock)


@router.post("/unlocks/{profile_id}/check/{threshold}", response_model=UnlockEligibilityResponse)
async def check_unlock(
    profile_id: str,
    threshold: int = Path(gt=0),
    body: CheckUnlockRequest | None = None,
    db: AsyncSession = Depends(get_session),
):
    """Report eligibility; when content details are supplied, unlock it once eligible."""
    content = None
    if body is not None and body.content_type and body.title:
        content = UnlockContentData(
            profile_id=profile_id,
            content_type=body.content_type,
            title=body.title,
            vote_threshold=threshold,
            description=body.description,
            content_url=body.content_url,
        )
    result = await check_unlock_eligibility(db, profile_id, threshold, content)
    return UnlockEligibilityResponse.model_validate(result)


# ── Achievements ──


@router.get("/achievements", response_model=AchievementListResponse, tags=["Achievements"])
async def achievements(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    rows, pagination = await list_achievements(db, page, limit)
    return AchievementListResponse.model_validate({"data": rows, "pagination": pagination})


@router.post("/achievements", response_model=AchievementResponse, status_code=201, tags=["Achievements"])
async def post_achievement(body: CreateAchievementRequest, db: AsyncSession = Depends(get_session)):
    achievement = await create_achievement(db, AchievementData(**body.model_dump()))
    return AchievementResponse.model_validate(achievement)


@router.get("/achievements/{profile_id}", response_model=ProfileAchievementListResponse, tags=["Achievements"])
async def profile_achievements(
    profile_id: str,
    category: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Every badge with this profile's unlock state and progress."""
    rows, pagination = await list_profile_achievements(db, profile_id, category, page, limit)
    return ProfileAchievementListResponse.model_validate({"data": rows, "pagination": pagination})


@router.post(
    "/achievements/{profile_id}/unlock/{achievement_id}",
    response_model=UnlockAchievementResponse,
    tags=["Achievements"],
)
async def post_unlock_achievement(
    profile_id: str,
    achievement_id: str,
    body: UnlockAchievementRequest | None = None,
    db: AsyncSession = Depends(get_session),
):
    progress = body.progress if body is not None else DEFAULT_UNLOCK_PROGRESS
    status = await unlock_achievement(db, profile_id, achievement_id, progress)
    return UnlockAchievementResponse(
        message="Achievement unlocked successfully",
        achievement=ProfileAchievementEntry.model_validate(status),
    )


# ── Spend milestones ──


@router.get("/spend-milestones/{voter_id}/{model_id}", response_model=SpendProgressResponse)
async def spend_progress(voter_id: str, model_id: str, db: AsyncSession = Depends(get_session)):
    return SpendProgressResponse.model_validate(await get_spend_progress(db, voter_id, model_id))
