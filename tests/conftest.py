"""Shared test fixtures.

Every test gets a fresh in-memory SQLite schema. Redis is never initialised,
so the rate limiter lets requests through unless a test patches it.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from swingvote.database import get_session
from swingvote.db.base import Base, new_id
from swingvote.db.models import (
    Achievement,
    AchievementCategory,
    AchievementTier,
    ActiveSpinPrize,
    Contest,
    Payment,
    Profile,
    SpinWheelReward,
    User,
    Vote,
    VoteMultiplierPeriod,
    VoteType,
)
from swingvote.main import create_app

NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with get_session bound to the test database."""
    app = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session_override
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class Factory:
    """Row builders. Each call flushes; call ``commit()`` before hitting the API."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def profile(
        self,
        *,
        name: str | None = None,
        username: str | None = None,
        email: str | None = None,
        available_votes: int = 0,
        last_free_vote_at: datetime | None = None,
        image: str | None = None,
    ) -> Profile:
        suffix = new_id()[:8]
        user = User(
            name=name or f"User {suffix}",
            username=username or f"user_{suffix}",
            email=email or f"{suffix}@example.com",
            image=image,
        )
        self.db.add(user)
        await self.db.flush()
        profile = Profile(user_id=user.id, available_votes=available_votes, last_free_vote_at=last_free_vote_at)
        self.db.add(profile)
        await self.db.flush()
        return profile

    async def contest(self, *, voting_enabled: bool = True, name: str = "Spring Cover") -> Contest:
        contest = Contest(name=name, slug=f"contest-{new_id()[:8]}", is_voting_enabled=voting_enabled)
        self.db.add(contest)
        await self.db.flush()
        return contest

    async def vote(
        self,
        *,
        votee: Profile,
        contest: Contest,
        voter: Profile | None = None,
        count: int = 1,
        type: str = VoteType.PAID,  # noqa: A002
        comment: str | None = None,
        created_at: datetime | None = None,
        payment: Payment | None = None,
    ) -> Vote:
        vote = Vote(
            type=type,
            count=count,
            voter_id=voter.id if voter else None,
            votee_id=votee.id,
            contest_id=contest.id,
            comment=comment,
            payment_id=payment.id if payment else None,
            created_at=created_at or NOW,
        )
        self.db.add(vote)
        await self.db.flush()
        return vote

    async def payment(self, *, amount: float = 25.0, status: str = "COMPLETED", payer: Profile | None = None) -> Payment:
        payment = Payment(amount=amount, status=status, payer_id=payer.id if payer else None)
        self.db.add(payment)
        await self.db.flush()
        return payment

    async def period(
        self,
        *,
        times: int,
        start: datetime | None = None,
        end: datetime | None = None,
        active: bool = True,
        created_at: datetime | None = None,
    ) -> VoteMultiplierPeriod:
        period = VoteMultiplierPeriod(
            multiplier_times=times,
            start_time=start or NOW - timedelta(hours=1),
            end_time=end or NOW + timedelta(hours=1),
            is_active=active,
            created_at=created_at or NOW - timedelta(days=1),
        )
        self.db.add(period)
        await self.db.flush()
        return period

    async def prize(
        self,
        *,
        profile: Profile,
        prize_type: str,
        prize_value: int | None = None,
        claimed: bool = False,
        active: bool = True,
        expires_at: datetime | None = None,
        created_at: datetime | None = None,
    ) -> ActiveSpinPrize:
        prize = ActiveSpinPrize(
            profile_id=profile.id,
            prize_type=prize_type,
            prize_value=prize_value,
            is_claimed=claimed,
            is_active=active,
            expires_at=expires_at,
            created_at=created_at or NOW - timedelta(hours=2),
        )
        self.db.add(prize)
        await self.db.flush()
        return prize

    async def reward(
        self,
        *,
        reward_type: str,
        reward_value: int | None = None,
        probability: float = 1.0,
        sort_order: int = 0,
        active: bool = True,
    ) -> SpinWheelReward:
        reward = SpinWheelReward(
            name=reward_type.replace("_", " ").title(),
            description=f"{reward_type} reward",
            icon="Gift",
            probability=probability,
            popup_message=f"You won {reward_type}!",
            reward_type=reward_type,
            reward_value=reward_value,
            is_active=active,
            sort_order=sort_order,
        )
        self.db.add(reward)
        await self.db.flush()
        return reward

    async def achievement(
        self,
        *,
        code: str | None = None,
        category: str = AchievementCategory.VOTING,
        tier: str = AchievementTier.BRONZE,
        requirement: int | None = None,
    ) -> Achievement:
        code = code or f"BADGE_{new_id()[:8].upper()}"
        achievement = Achievement(
            code=code,
            name=code.replace("_", " ").title(),
            description=f"{code} badge",
            icon="Award",
            category=category,
            tier=tier,
            requirement=requirement,
        )
        self.db.add(achievement)
        await self.db.flush()
        return achievement


@pytest_asyncio.fixture
async def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)
