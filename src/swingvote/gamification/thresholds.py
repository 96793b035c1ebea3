"""Static threshold tables for vote milestones, content unlocks and referral tiers.

These tables are immutable and passed explicitly into the progress
calculators so alternate sets can be injected (tests, future per-contest
configuration). They MUST match the frontend badge and unlock copy.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from swingvote.db.models import UnlockContentType


@dataclass(frozen=True)
class ThresholdConfig:
    threshold: int
    name: str
    description: str
    icon: str
    reward: str


@dataclass(frozen=True)
class UnlockTier:
    threshold: int
    content_type: str
    title: str


@dataclass(frozen=True)
class ReferralTier:
    min_referrals: int
    max_referrals: int | None
    tier_name: str
    tier_level: int
    reward: str
    description: str
    icon: str
    color: str


def validate_thresholds(entries: Sequence[ThresholdConfig | UnlockTier]) -> tuple:
    """Return entries as a tuple, rejecting non-positive or decreasing thresholds."""
    previous = 0
    for entry in entries:
        if entry.threshold <= 0:
            msg = f"Threshold must be positive, got {entry.threshold}"
            raise ValueError(msg)
        if entry.threshold < previous:
            msg = f"Thresholds must be non-decreasing ({entry.threshold} after {previous})"
            raise ValueError(msg)
        previous = entry.threshold
    return tuple(entries)


VOTE_MILESTONE_CONFIGS: tuple[ThresholdConfig, ...] = validate_thresholds([
    ThresholdConfig(
        threshold=100,
        name="Unlock Exclusive Photo",
        description="Reach 100 votes to unlock exclusive photo content",
        icon="Camera",
        reward="Exclusive Photo Access",
    ),
    ThresholdConfig(
        threshold=200,
        name="Unlock Video/Audio Message",
        description="Reach 200 votes to unlock video/audio message content",
        icon="Video",
        reward="Video/Audio Message Access",
    ),
    ThresholdConfig(
        threshold=500,
        name="Unlock Private Call",
        description="Reach 500 votes to unlock private call feature",
        icon="Phone",
        reward="Private Call Access",
    ),
    ThresholdConfig(
        threshold=1000,
        name="Unlock Signed Merch / Magazine",
        description="Reach 1000 votes to unlock signed merchandise and magazine feature",
        icon="Gift",
        reward="Signed Merch / Magazine Feature",
    ),
])

UNLOCK_TIERS: tuple[UnlockTier, ...] = validate_thresholds([
    UnlockTier(100, UnlockContentType.EXCLUSIVE_PHOTO, "Exclusive Photo"),
    UnlockTier(200, UnlockContentType.VIDEO_MESSAGE, "Video Message"),
    UnlockTier(200, UnlockContentType.AUDIO_MESSAGE, "Audio Message"),
    UnlockTier(500, UnlockContentType.PRIVATE_CALL, "Private Call"),
    UnlockTier(1000, UnlockContentType.SIGNED_MERCH, "Signed Merch"),
    UnlockTier(1000, UnlockContentType.MAGAZINE_FEATURE, "Magazine Feature"),
])

REFERRAL_TIERS: tuple[ReferralTier, ...] = (
    ReferralTier(0, 4, "Starter", 0, "Welcome to the referral program",
                 "Start inviting friends to earn rewards", "UserPlus", "gray"),
    ReferralTier(5, 9, "Bronze", 1, "Bronze Package - 10 bonus votes",
                 "Refer 5 friends to unlock Bronze tier rewards", "Award", "orange"),
    ReferralTier(10, 19, "Silver", 2, "Silver Package - 25 bonus votes + Featured placement",
                 "Refer 10 friends to unlock Silver tier rewards", "Medal", "silver"),
    ReferralTier(20, 49, "Gold", 3, "Gold Exclusive Package - 50 bonus votes + VIP badge",
                 "Refer 20 friends to unlock Gold tier rewards", "Trophy", "gold"),
    ReferralTier(50, 99, "Platinum", 4, "Platinum VIP Package - 100 bonus votes + Premium features",
                 "Refer 50 friends to unlock Platinum tier rewards", "Star", "blue"),
    ReferralTier(100, None, "Diamond", 5,
                 "Diamond Elite Package - 250 bonus votes + Magazine feature + Exclusive perks",
                 "Refer 100 friends to unlock the ultimate Diamond tier", "Crown", "purple"),
)


def milestone_config_for(
    threshold: int,
    configs: Sequence[ThresholdConfig] = VOTE_MILESTONE_CONFIGS,
) -> ThresholdConfig | None:
    for config in configs:
        if config.threshold == threshold:
            return config
    return None


def current_tier(
    referral_count: int,
    tiers: Sequence[ReferralTier] = REFERRAL_TIERS,
) -> ReferralTier | None:
    """Highest tier whose [min, max] range contains the count."""
    eligible = [
        t for t in tiers
        if referral_count >= t.min_referrals
        and (t.max_referrals is None or referral_count <= t.max_referrals)
    ]
    return eligible[-1] if eligible else None


def next_tier(
    referral_count: int,
    tiers: Sequence[ReferralTier] = REFERRAL_TIERS,
) -> ReferralTier | None:
    """First tier that still requires more referrals, or None at the top."""
    for t in tiers:
        if t.min_referrals > referral_count:
            return t
    return None
