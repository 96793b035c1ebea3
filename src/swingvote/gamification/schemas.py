"""Request and response models for milestone, unlock, achievement and spend-progress endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from swingvote.db.models import AchievementCategory, AchievementTier
from swingvote.schemas import CamelModel, PaginationMeta


# --- Vote milestones ---


class MilestoneProgressEntry(CamelModel):
    threshold: int
    name: str
    description: str
    icon: str
    reward: str
    is_unlocked: bool
    progress: int
    unlocked_at: datetime | None = None


class NextMilestoneResponse(CamelModel):
    threshold: int
    name: str
    votes_needed: int
    progress: int


class MilestoneProgressResponse(CamelModel):
    total_votes: int
    milestones: list[MilestoneProgressEntry]
    next_milestone: NextMilestoneResponse | None


class MilestoneRecord(CamelModel):
    id: str
    type: str
    threshold: int
    current_value: int
    is_notified: bool
    created_at: datetime


class MilestoneListResponse(CamelModel):
    data: list[MilestoneRecord]
    pagination: PaginationMeta


# --- Content unlocks ---


class UnlockProgressEntry(CamelModel):
    type: str
    title: str
    description: str
    vote_threshold: int
    is_unlocked: bool
    progress: int
    unlocked_at: datetime | None = None
    content_url: str | None = None


class UnlockProgressResponse(CamelModel):
    total_votes: int
    unlocks: list[UnlockProgressEntry]


class UnlockedContentResponse(CamelModel):
    id: str
    profile_id: str
    content_type: str
    title: str
    description: str | None
    content_url: str | None
    vote_threshold: int
    unlocked_at: datetime


class UnlockListResponse(CamelModel):
    data: list[UnlockedContentResponse]
    pagination: PaginationMeta


class CreateUnlockRequest(CamelModel):
    profile_id: str
    content_type: str
    title: str = Field(min_length=1, max_length=255)
    vote_threshold: int = Field(gt=0)
    description: str | None = None
    content_url: str | None = None


class CheckUnlockRequest(CamelModel):
    content_type: str | None = None
    title: str | None = None
    description: str | None = None
    content_url: str | None = None


class UnlockEligibilityResponse(CamelModel):
    is_eligible: bool
    current_votes: int
    required_votes: int
    votes_needed: int
    unlocked_content: UnlockedContentResponse | None = None


# --- Achievements ---


class AchievementResponse(CamelModel):
    id: str
    code: str
    name: str
    description: str
    icon: str
    badge_image: str | None
    category: str
    requirement: int | None
    tier: str
    created_at: datetime
    updated_at: datetime


class AchievementListResponse(CamelModel):
    data: list[AchievementResponse]
    pagination: PaginationMeta


class ProfileAchievementEntry(CamelModel):
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


class ProfileAchievementListResponse(CamelModel):
    data: list[ProfileAchievementEntry]
    pagination: PaginationMeta


class CreateAchievementRequest(CamelModel):
    code: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1, max_length=255)
    description: str
    icon: str
    category: AchievementCategory
    tier: AchievementTier = AchievementTier.BRONZE
    requirement: int | None = Field(None, gt=0)
    badge_image: str | None = Field(None, pattern=r"^https?://\S+$")


class UnlockAchievementRequest(CamelModel):
    progress: int = Field(100, ge=0, le=100)


class UnlockAchievementResponse(CamelModel):
    message: str
    achievement: ProfileAchievementEntry


# --- Spend milestones ---


class SpendProgressResponse(CamelModel):
    total_spent: float
    last_milestone_reached: int | None
    next_milestone: int
    progress_to_next: float
