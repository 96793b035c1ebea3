"""Admin dashboard endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from swingvote.admin.schemas import AdminVote, AdminVoteListResponse, ContestRef, PaymentRef, ProfileRef
from swingvote.admin.vote_report import MAX_LIMIT, AdminVoteRow, VoteReportFilters, list_votes
from swingvote.database import get_session
from swingvote.db.models import Profile

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


def _profile_ref(profile: Profile) -> ProfileRef:
    user = profile.user
    return ProfileRef(
        id=profile.id,
        username=user.username or "",
        name=user.name,
        profile_picture=user.image or "",
    )


def _to_admin_vote(row: AdminVoteRow) -> AdminVote:
    vote = row.vote
    return AdminVote(
        id=vote.id,
        type=vote.type,
        count=vote.count,
        comment=vote.comment,
        created_at=vote.created_at,
        contest=ContestRef.model_validate(vote.contest),
        voter=_profile_ref(row.voter),
        votee=_profile_ref(vote.votee),
        payment=PaymentRef.model_validate(vote.payment) if vote.payment else None,
    )


@router.get("/votes", response_model=AdminVoteListResponse)
async def get_votes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_LIMIT),
    contest_id: str | None = Query(None, alias="contestId"),
    voter_id: str | None = Query(None, alias="voterId"),
    model_id: str | None = Query(None, alias="modelId"),
    search: str | None = Query(None),
    type: Literal["all", "FREE", "PAID"] = Query("all"),  # noqa: A002
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    sort_by: Literal["createdAt", "count"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_session),
):
    """All votes with filters. ``pagination.total`` counts votes before voter resolution."""
    filters = VoteReportFilters(
        contest_id=contest_id,
        voter_id=voter_id,
        model_id=model_id,
        search=search or None,
        type=type,
        start_date=start_date or None,
        end_date=end_date or None,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    report = await list_votes(db, filters)
    return AdminVoteListResponse.model_validate({
        "data": [_to_admin_vote(row) for row in report.data],
        "pagination": report.pagination,
    })
