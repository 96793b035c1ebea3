"""Filtered, paginated vote listing for the admin dashboard.

Votes whose voter was deleted (``voter_id`` NULL) or cannot be resolved are
dropped after fetching. The page query over-fetches to compensate, while
``pagination.total`` still counts every vote matching the filters, so
``total`` can exceed the number of rows an admin can actually page through.

Search is case-insensitive. The term and every field it is matched against
(``SEARCH_FIELDS`` on either party plus the vote comment) are lowercased
before the substring match. ``%`` and ``_`` in the term match literally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

import structlog
from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from swingvote.config import get_settings
from swingvote.database import store_access
from swingvote.db.models import Profile, User, Vote
from swingvote.errors import ValidationError
from swingvote.pagination import page_offset, pagination_metadata

logger = structlog.get_logger()

MAX_LIMIT = 100
SEARCH_FIELDS = ("name", "username", "email", "display_username")

_BARE_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class VoteReportFilters:
    contest_id: str | None = None
    voter_id: str | None = None
    model_id: str | None = None
    search: str | None = None
    type: Literal["all", "FREE", "PAID"] = "all"
    start_date: str | None = None
    end_date: str | None = None
    sort_by: Literal["createdAt", "count"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValidationError("page must be >= 1")
        if not 1 <= self.limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")
        if self.type not in ("all", "FREE", "PAID"):
            raise ValidationError(f"Unknown vote type filter: {self.type}")
        if self.sort_by not in ("createdAt", "count"):
            raise ValidationError(f"Cannot sort by {self.sort_by}")
        if self.sort_order not in ("asc", "desc"):
            raise ValidationError(f"Invalid sort order: {self.sort_order}")


@dataclass(frozen=True)
class AdminVoteRow:
    vote: Vote
    voter: Profile


@dataclass(frozen=True)
class VoteReport:
    data: list[AdminVoteRow]
    pagination: dict


def normalize_date_bound(value: str, *, end_of_day: bool) -> datetime:
    """Parse a filter bound. A bare date covers the whole UTC day."""
    raw = value.strip()
    if _BARE_DATE.match(raw):
        raw = f"{raw}T23:59:59.999Z" if end_of_day else f"{raw}T00:00:00.000Z"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _search_predicate(search: str) -> ColumnElement[bool]:
    needle = search.lower()
    matching_profiles = (
        select(Profile.id)
        .join(User, Profile.user_id == User.id)
        .where(or_(*[
            func.lower(getattr(User, field)).contains(needle, autoescape=True)
            for field in SEARCH_FIELDS
        ]))
    )
    return or_(
        Vote.votee_id.in_(matching_profiles),
        Vote.voter_id.in_(matching_profiles),
        func.lower(Vote.comment).contains(needle, autoescape=True),
    )


def build_vote_predicates(filters: VoteReportFilters) -> list[ColumnElement[bool]]:
    predicates: list[ColumnElement[bool]] = []
    if filters.contest_id:
        predicates.append(Vote.contest_id == filters.contest_id)
    if filters.voter_id:
        predicates.append(Vote.voter_id == filters.voter_id)
    if filters.model_id:
        predicates.append(Vote.votee_id == filters.model_id)
    if filters.search:
        predicates.append(_search_predicate(filters.search))
    if filters.type != "all":
        predicates.append(Vote.type == filters.type)
    if filters.start_date:
        predicates.append(Vote.created_at >= normalize_date_bound(filters.start_date, end_of_day=False))
    if filters.end_date:
        predicates.append(Vote.created_at <= normalize_date_bound(filters.end_date, end_of_day=True))
    return predicates


def build_vote_ordering(filters: VoteReportFilters) -> list:
    column = Vote.count if filters.sort_by == "count" else Vote.created_at
    primary = column.asc() if filters.sort_order == "asc" else column.desc()
    # Tie-break on id so pages stay stable.
    return [primary, Vote.id.asc()]


async def list_votes(db: AsyncSession, filters: VoteReportFilters) -> VoteReport:
    predicates = build_vote_predicates(filters)
    overfetch = get_settings().admin_overfetch

    with store_access("admin_list_votes"):
        total = (await db.execute(
            select(func.count()).select_from(Vote).where(*predicates)
        )).scalar_one()

        result = await db.execute(
            select(Vote)
            .where(*predicates)
            .options(
                selectinload(Vote.contest),
                selectinload(Vote.votee),
                selectinload(Vote.payment),
            )
            .order_by(*build_vote_ordering(filters))
            .offset(page_offset(filters.page, filters.limit))
            .limit(filters.limit + overfetch)
        )
        fetched = list(result.scalars().all())

        with_voter = [v for v in fetched if v.voter_id is not None]
        voter_ids = {v.voter_id for v in with_voter}
        voters: dict[str, Profile] = {}
        if voter_ids:
            voter_result = await db.execute(select(Profile).where(Profile.id.in_(voter_ids)))
            voters = {p.id: p for p in voter_result.scalars()}

    rows = [
        AdminVoteRow(vote=v, voter=voters[v.voter_id])
        for v in with_voter
        if v.voter_id in voters
    ][:filters.limit]

    dropped = len(fetched) - len(rows)
    if dropped and len(rows) < filters.limit:
        logger.debug("admin_votes_rows_dropped", dropped=dropped, returned=len(rows))

    return VoteReport(data=rows, pagination=pagination_metadata(total, filters.page, filters.limit))
