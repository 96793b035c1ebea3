"""ORM models for accounts, votes, contests and gamification state."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from swingvote.db.base import Base, UTCDateTime, new_id, utcnow


class VoteType(enum.StrEnum):
    FREE = "FREE"
    PAID = "PAID"


class PrizeType(enum.StrEnum):
    BONUS_VOTES = "BONUS_VOTES"
    VOTE_MULTIPLIER = "VOTE_MULTIPLIER"
    PERSONAL_MESSAGE = "PERSONAL_MESSAGE"
    INSTAGRAM_FEATURE = "INSTAGRAM_FEATURE"
    EXCLUSIVE_BADGE = "EXCLUSIVE_BADGE"
    MAGAZINE_FOLLOW_BACK = "MAGAZINE_FOLLOW_BACK"
    DIGITAL_BOUDOIR_ACCESS = "DIGITAL_BOUDOIR_ACCESS"
    BTS_VIDEO_LINK = "BTS_VIDEO_LINK"
    VOTE_MULTIPLIER_TOKEN = "VOTE_MULTIPLIER_TOKEN"
    FREE_RETRY_SPIN = "FREE_RETRY_SPIN"
    MEET_GREET_DISCOUNT = "MEET_GREET_DISCOUNT"


class PaymentStatus(enum.StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class MilestoneType(enum.StrEnum):
    VOTE_COUNT = "VOTE_COUNT"


class AchievementCategory(enum.StrEnum):
    VOTING = "VOTING"
    ENGAGEMENT = "ENGAGEMENT"


class AchievementTier(enum.StrEnum):
    """Declared in rank order; listings sort by this order, not alphabetically."""

    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"
    DIAMOND = "DIAMOND"


class UnlockContentType(enum.StrEnum):
    EXCLUSIVE_PHOTO = "EXCLUSIVE_PHOTO"
    VIDEO_MESSAGE = "VIDEO_MESSAGE"
    AUDIO_MESSAGE = "AUDIO_MESSAGE"
    PRIVATE_CALL = "PRIVATE_CALL"
    SIGNED_MERCH = "SIGNED_MERCH"
    MAGAZINE_FEATURE = "MAGAZINE_FEATURE"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class User(Base):
    """Account record. Display fields are searched by the admin vote report."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    username: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    display_username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    referral_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    referred_by_id: Mapped[str | None] = mapped_column(String(32), ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    profile: Mapped[Profile | None] = relationship("Profile", back_populates="user", uselist=False)


class Profile(Base):
    """A voter or model identity owned by exactly one user."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(32), ForeignKey("users.id", ondelete="CASCADE"), unique=True)
    available_votes: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    last_free_vote_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="profile", lazy="joined")


# ---------------------------------------------------------------------------
# Contests & votes
# ---------------------------------------------------------------------------


class Contest(Base):
    __tablename__ = "contests"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_voting_enabled: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class ContestParticipation(Base):
    __tablename__ = "contest_participations"
    __table_args__ = (UniqueConstraint("contest_id", "profile_id", name="uq_participation"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    contest_id: Mapped[str] = mapped_column(String(32), ForeignKey("contests.id", ondelete="CASCADE"))
    profile_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))


class Payment(Base):
    """Payment row; status transitions are driven by the processor's webhook."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=PaymentStatus.PENDING, nullable=False)
    payer_id: Mapped[str | None] = mapped_column(String(32), ForeignKey("profiles.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class Vote(Base):
    """Immutable vote record. voter_id is nullable for orphaned voters."""

    __tablename__ = "votes"
    __table_args__ = (
        Index("idx_votes_votee", "votee_id"),
        Index("idx_votes_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    voter_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    votee_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    contest_id: Mapped[str] = mapped_column(String(32), ForeignKey("contests.id", ondelete="CASCADE"))
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_id: Mapped[str | None] = mapped_column(String(32), ForeignKey("payments.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    votee: Mapped[Profile] = relationship("Profile", foreign_keys=[votee_id])
    contest: Mapped[Contest] = relationship("Contest")
    payment: Mapped[Payment | None] = relationship("Payment")


# ---------------------------------------------------------------------------
# Multipliers & spin wheel
# ---------------------------------------------------------------------------


class VoteMultiplierPeriod(Base):
    """Admin-defined global window during which every vote counts extra."""

    __tablename__ = "vote_multiplier_periods"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    multiplier_times: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class SpinWheelReward(Base):
    __tablename__ = "spin_wheel_rewards"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(100), nullable=False)
    probability: Mapped[float] = mapped_column(Float, nullable=False)
    popup_message: Mapped[str] = mapped_column(Text, nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    reward_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")


class SpinWheelHistory(Base):
    __tablename__ = "spin_wheel_history"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    reward_id: Mapped[str] = mapped_column(String(32), ForeignKey("spin_wheel_rewards.id"))
    reward_name: Mapped[str] = mapped_column(String(255), nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False)
    spun_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class ActiveSpinPrize(Base):
    """Profile-scoped reward grant. Claim state changes only via conditional update."""

    __tablename__ = "active_spin_prizes"
    __table_args__ = (Index("idx_spin_prizes_profile_type", "profile_id", "prize_type"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    prize_type: Mapped[str] = mapped_column(String(32), nullable=False)
    prize_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")
    is_claimed: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    claimed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Milestones & unlocks
# ---------------------------------------------------------------------------


class Milestone(Base):
    """Audit record that a profile crossed a threshold. Not the source of unlock state."""

    __tablename__ = "milestones"
    __table_args__ = (UniqueConstraint("profile_id", "type", "threshold", name="uq_milestone"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    type: Mapped[str] = mapped_column(String(16), default=MilestoneType.VOTE_COUNT, nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False)
    is_notified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    notified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)


class UnlockedContent(Base):
    __tablename__ = "unlocked_content"
    __table_args__ = (
        UniqueConstraint("profile_id", "content_type", "vote_threshold", name="uq_unlocked_content"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    content_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    vote_threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")


class VoterModelMilestone(Base):
    """Running spend of one voter on one model, for free-spin milestones."""

    __tablename__ = "voter_model_milestones"
    __table_args__ = (UniqueConstraint("voter_id", "model_id", name="uq_voter_model"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    voter_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    model_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    total_spent: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    last_milestone_reached: Mapped[int | None] = mapped_column(Integer, nullable=True)
    last_milestone_reached_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Badge definition. ``requirement`` drives computed progress for VOTING badges."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon: Mapped[str] = mapped_column(String(64), nullable=False)
    badge_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    requirement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tier: Mapped[str] = mapped_column(String(16), default=AchievementTier.BRONZE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class ProfileAchievement(Base):
    __tablename__ = "profile_achievements"
    __table_args__ = (UniqueConstraint("profile_id", "achievement_id", name="uq_profile_achievement"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    profile_id: Mapped[str] = mapped_column(String(32), ForeignKey("profiles.id", ondelete="CASCADE"))
    achievement_id: Mapped[str] = mapped_column(String(32), ForeignKey("achievements.id", ondelete="CASCADE"))
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=100, nullable=False)
