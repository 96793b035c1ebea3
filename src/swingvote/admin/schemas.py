"""Admin vote report response models."""

from __future__ import annotations

from datetime import datetime

from swingvote.schemas import CamelModel, PaginationMeta


class ContestRef(CamelModel):
    id: str
    name: str
    slug: str


class ProfileRef(CamelModel):
    id: str
    username: str
    name: str | None
    profile_picture: str


class PaymentRef(CamelModel):
    id: str
    amount: float
    status: str


class AdminVote(CamelModel):
    id: str
    type: str
    count: int
    comment: str | None
    created_at: datetime
    contest: ContestRef
    voter: ProfileRef
    votee: ProfileRef
    payment: PaymentRef | None


class AdminVoteListResponse(CamelModel):
    data: list[AdminVote]
    pagination: PaginationMeta
