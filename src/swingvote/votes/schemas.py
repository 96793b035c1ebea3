"""Request/response models for voting endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from swingvote.schemas import CamelModel


class FreeVoteRequest(CamelModel):
    voter_id: str
    votee_id: str
    contest_id: str
    comment: str | None = Field(default=None, max_length=1000)


class CreditVoteRequest(FreeVoteRequest):
    count: int = Field(default=1, ge=1)


class VoteResponse(CamelModel):
    id: str
    type: str
    count: int
    voter_id: str | None
    votee_id: str
    contest_id: str
    comment: str | None
    created_at: datetime


class CreditVoteResponse(VoteResponse):
    remaining_credits: int
    multiplier: int
    original_count: int
    actual_count: int


class FreeVoteStatusResponse(CamelModel):
    available: bool
    next_available_at: datetime | None = None


class AvailableVotesResponse(CamelModel):
    profile_id: str
    available_votes: int
    last_free_vote_at: datetime | None
    free_vote_available: bool


class MultiplierResponse(CamelModel):
    original_votes: int
    multiplier: int
    total_votes: int
    has_active_multiplier: bool


class MultiplierPeriodResponse(CamelModel):
    id: str
    multiplier_times: int
    start_time: datetime
    end_time: datetime


class ActiveMultiplierResponse(CamelModel):
    active: bool
    period: MultiplierPeriodResponse | None = None
