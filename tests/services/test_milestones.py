"""Milestone and unlock services against the store."""

import pytest
from sqlalchemy import func, select

from swingvote.db.models import Milestone, MilestoneType, UnlockedContent, VoteType
from swingvote.errors import NotFoundError, ValidationError
from swingvote.gamification import milestone_service, unlock_service
from swingvote.gamification.milestone_service import (
    get_milestone_progress,
    get_vote_total,
    list_profile_milestones,
    record_crossed_milestones,
)
from swingvote.gamification.unlock_service import (
    UnlockContentData,
    check_unlock_eligibility,
    create_unlock,
    get_unlock_progress,
    list_profile_unlocks,
)


@pytest.mark.asyncio
class TestMilestoneProgress:

    async def test_450_votes(self, db_session, factory):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=300)
        await factory.vote(votee=model, contest=contest, count=150, type=VoteType.FREE)

        report = await get_milestone_progress(db_session, model.id)
        assert report.total_votes == 450
        assert report.next_milestone.threshold == 500
        assert report.next_milestone.votes_needed == 50
        assert report.next_milestone.progress == 90

    async def test_no_votes(self, db_session, factory):
        model = await factory.profile()
        assert await get_vote_total(db_session, model.id) == 0
        report = await get_milestone_progress(db_session, model.id)
        assert report.total_votes == 0
        assert all(not m.is_unlocked for m in report.milestones)

    async def test_missing_profile(self, db_session):
        with pytest.raises(NotFoundError):
            await get_milestone_progress(db_session, "nope")

    async def test_votes_cast_by_profile_do_not_count(self, db_session, factory):
        model = await factory.profile()
        other = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=other, voter=model, contest=contest, count=500)
        assert await get_vote_total(db_session, model.id) == 0


@pytest.mark.asyncio
class TestRecordCrossedMilestones:

    async def test_records_once(self, db_session, factory):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=250)

        created = await record_crossed_milestones(db_session, model.id)
        assert sorted(m.threshold for m in created) == [100, 200]
        assert await record_crossed_milestones(db_session, model.id) == []

        count = (await db_session.execute(
            select(func.count()).select_from(Milestone).where(Milestone.profile_id == model.id)
        )).scalar_one()
        assert count == 2

    async def test_unlocked_at_surfaces_in_progress(self, db_session, factory):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=120)
        await record_crossed_milestones(db_session, model.id)

        report = await get_milestone_progress(db_session, model.id)
        first = report.milestones[0]
        assert first.is_unlocked
        assert first.unlocked_at is not None
        assert report.milestones[1].unlocked_at is None

    async def test_listing_is_paginated(self, db_session, factory):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=1000)
        await record_crossed_milestones(db_session, model.id)

        rows, pagination = await list_profile_milestones(db_session, model.id, page=1, limit=3)
        assert len(rows) == 3
        assert pagination["total"] == 4
        assert pagination["hasNextPage"]

    async def test_row_written_after_stale_read_is_skipped(self, db_session, factory, monkeypatch):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=250)
        db_session.add(Milestone(profile_id=model.id, type=MilestoneType.VOTE_COUNT, threshold=100, current_value=120))
        await db_session.flush()

        async def _stale(*_args):
            return set()

        monkeypatch.setattr(milestone_service, "_recorded_thresholds", _stale)
        created = await record_crossed_milestones(db_session, model.id)
        assert [m.threshold for m in created] == [200]

        await db_session.commit()
        thresholds = (await db_session.execute(
            select(Milestone.threshold).where(Milestone.profile_id == model.id).order_by(Milestone.threshold)
        )).scalars().all()
        assert thresholds == [100, 200]


@pytest.mark.asyncio
class TestUnlocks:

    async def test_progress_uses_live_total(self, db_session, factory):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=210)

        report = await get_unlock_progress(db_session, model.id)
        by_type = {u.type: u for u in report.unlocks}
        assert by_type["VIDEO_MESSAGE"].is_unlocked
        assert not by_type["PRIVATE_CALL"].is_unlocked
        assert by_type["PRIVATE_CALL"].progress == 42

    async def test_create_and_duplicate(self, db_session, factory):
        model = await factory.profile()
        data = UnlockContentData(
            profile_id=model.id, content_type="EXCLUSIVE_PHOTO", title="Backstage", vote_threshold=100,
            content_url="https://cdn.example.com/backstage.jpg",
        )
        unlock = await create_unlock(db_session, data)
        assert unlock.id
        with pytest.raises(ValidationError):
            await create_unlock(db_session, data)

    async def test_create_for_missing_profile(self, db_session):
        data = UnlockContentData(profile_id="ghost", content_type="EXCLUSIVE_PHOTO", title="x", vote_threshold=100)
        with pytest.raises(NotFoundError):
            await create_unlock(db_session, data)

    async def test_eligibility_not_met(self, db_session, factory):
        model = await factory.profile()
        result = await check_unlock_eligibility(db_session, model.id, 100)
        assert not result.is_eligible
        assert result.votes_needed == 100
        assert result.unlocked_content is None

    async def test_eligibility_auto_unlocks_once(self, db_session, factory):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=150)
        content = UnlockContentData(
            profile_id=model.id, content_type="EXCLUSIVE_PHOTO", title="Photo", vote_threshold=100,
        )

        first = await check_unlock_eligibility(db_session, model.id, 100, content)
        second = await check_unlock_eligibility(db_session, model.id, 100, content)
        assert first.is_eligible
        assert first.votes_needed == 0
        assert first.unlocked_content.id == second.unlocked_content.id

        rows, pagination = await list_profile_unlocks(db_session, model.id)
        assert [r.id for r in rows] == [first.unlocked_content.id]
        assert pagination["total"] == 1

    async def test_inactive_unlocks_hidden(self, db_session, factory):
        model = await factory.profile()
        db_session.add(UnlockedContent(
            profile_id=model.id, content_type="PRIVATE_CALL", title="Call", vote_threshold=500, is_active=False,
        ))
        await db_session.flush()
        rows, _ = await list_profile_unlocks(db_session, model.id)
        assert rows == []

    async def test_duplicate_behind_stale_read_is_rejected(self, db_session, factory, monkeypatch):
        model = await factory.profile()
        data = UnlockContentData(
            profile_id=model.id, content_type="EXCLUSIVE_PHOTO", title="Backstage", vote_threshold=100,
        )
        await create_unlock(db_session, data)

        async def _stale(*_args):
            return None

        monkeypatch.setattr(unlock_service, "_find_unlock", _stale)
        with pytest.raises(ValidationError):
            await create_unlock(db_session, data)

        await db_session.commit()
        count = (await db_session.execute(
            select(func.count()).select_from(UnlockedContent).where(UnlockedContent.profile_id == model.id)
        )).scalar_one()
        assert count == 1

    async def test_eligibility_returns_unlock_written_by_racing_request(self, db_session, factory, monkeypatch):
        model = await factory.profile()
        contest = await factory.contest()
        await factory.vote(votee=model, contest=contest, count=150)
        content = UnlockContentData(
            profile_id=model.id, content_type="EXCLUSIVE_PHOTO", title="Photo", vote_threshold=100,
        )
        existing = await create_unlock(db_session, content)

        real_find = unlock_service._find_unlock
        calls = []

        async def _stale_then_real(*args):
            calls.append(args)
            if len(calls) <= 2:
                return None
            return await real_find(*args)

        monkeypatch.setattr(unlock_service, "_find_unlock", _stale_then_real)
        result = await check_unlock_eligibility(db_session, model.id, 100, content)
        assert result.is_eligible
        assert result.unlocked_content.id == existing.id
        await db_session.commit()
