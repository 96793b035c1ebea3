"""Milestone and unlock progress calculators.

Pure functions: unlock state is always derived from the live vote total,
never from a persisted flag. Persisted rows only contribute ``unlocked_at``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime

from swingvote.gamification.thresholds import ThresholdConfig, UnlockTier


@dataclass(frozen=True)
class MilestoneProgress:
    threshold: int
    name: str
    description: str
    icon: str
    reward: str
    is_unlocked: bool
    progress: int
    unlocked_at: datetime | None


@dataclass(frozen=True)
class NextMilestone:
    threshold: int
    name: str
    votes_needed: int
    progress: int


@dataclass(frozen=True)
class ProgressReport:
    total_votes: int
    milestones: list[MilestoneProgress]
    next_milestone: NextMilestone | None


@dataclass(frozen=True)
class UnlockProgress:
    type: str
    title: str
    description: str
    vote_threshold: int
    is_unlocked: bool
    progress: int
    unlocked_at: datetime | None
    content_url: str | None


@dataclass(frozen=True)
class UnlockReport:
    total_votes: int
    unlocks: list[UnlockProgress]


@dataclass(frozen=True)
class UnlockRecord:
    """Persisted unlock row as seen by the calculator."""

    content_type: str
    vote_threshold: int
    unlocked_at: datetime
    content_url: str | None = None


def normalize_total(total_votes: int | None) -> int:
    """Missing or negative aggregates count as zero."""
    if total_votes is None or total_votes < 0:
        return 0
    return int(total_votes)


def round_half_up(value: float) -> int:
    """Round .5 upwards (matches the frontend's Math.round)."""
    return math.floor(value + 0.5)


def percent_of(total_votes: int, threshold: int) -> int:
    """Unclamped rounded percentage of threshold reached."""
    return round_half_up(total_votes / threshold * 100)


def clamp_percent(value: int) -> int:
    return max(0, min(100, value))


def compute_progress(
    total_votes: int | None,
    configs: Sequence[ThresholdConfig],
    unlocked_records: Mapping[int, datetime] | None = None,
) -> ProgressReport:
    """Map a vote total against ordered milestone configs."""
    total = normalize_total(total_votes)
    records = unlocked_records or {}

    milestones = [
        MilestoneProgress(
            threshold=config.threshold,
            name=config.name,
            description=config.description,
            icon=config.icon,
            reward=config.reward,
            is_unlocked=total >= config.threshold,
            progress=clamp_percent(percent_of(total, config.threshold)),
            unlocked_at=records.get(config.threshold),
        )
        for config in configs
    ]

    # Ordered scan; the table is small and static.
    next_milestone = None
    for config in configs:
        if config.threshold > total:
            next_milestone = NextMilestone(
                threshold=config.threshold,
                name=config.name,
                votes_needed=config.threshold - total,
                progress=percent_of(total, config.threshold),
            )
            break

    return ProgressReport(total_votes=total, milestones=milestones, next_milestone=next_milestone)


def compute_unlock_progress(
    total_votes: int | None,
    tiers: Sequence[UnlockTier],
    unlocked_records: Iterable[UnlockRecord] = (),
) -> UnlockReport:
    """Same threshold pattern as milestones, keyed by (content type, threshold)."""
    total = normalize_total(total_votes)
    by_key = {(r.content_type, r.vote_threshold): r for r in unlocked_records}

    unlocks = []
    for tier in tiers:
        record = by_key.get((tier.content_type, tier.threshold))
        is_unlocked = total >= tier.threshold
        unlocks.append(UnlockProgress(
            type=tier.content_type,
            title=tier.title,
            description=f"Unlock at {tier.threshold} votes",
            vote_threshold=tier.threshold,
            is_unlocked=is_unlocked,
            progress=clamp_percent(percent_of(total, tier.threshold)),
            unlocked_at=record.unlocked_at if record else None,
            content_url=record.content_url if (record and is_unlocked) else None,
        ))

    return UnlockReport(total_votes=total, unlocks=unlocks)


def crossed_thresholds(total_votes: int | None, configs: Sequence[ThresholdConfig]) -> list[int]:
    """Thresholds the total has reached, in config order."""
    total = normalize_total(total_votes)
    return [c.threshold for c in configs if total >= c.threshold]
