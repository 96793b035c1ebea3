"""Referral codes, attribution and stats against the store."""

from datetime import timedelta

import pytest
from sqlalchemy import select, update

from swingvote.db.models import Profile, User
from swingvote.errors import NotFoundError, ValidationError
from swingvote.referrals.service import (
    generate_referral_code,
    get_referral_stats,
    process_referral,
    referral_leaderboard,
    share_referral,
    tier_progress,
)


async def _user(db, user_id):
    return await db.get(User, user_id, populate_existing=True)


async def _votes(db, profile_id):
    return await db.scalar(select(Profile.available_votes).where(Profile.id == profile_id))


@pytest.mark.asyncio
class TestReferralCode:

    async def test_username_becomes_code_once(self, db_session, factory):
        profile = await factory.profile(username="starlet")

        first = await generate_referral_code(db_session, profile.user_id)
        assert first.created
        assert first.referral_code == "starlet"
        assert first.referral_link == "http://localhost:5173/register?ref=starlet"

        second = await generate_referral_code(db_session, profile.user_id)
        assert not second.created
        assert second.referral_code == "starlet"

    async def test_random_code_when_username_is_taken(self, db_session, factory):
        owner = await factory.profile(username="owner")
        await db_session.execute(update(User).where(User.id == owner.user_id).values(referral_code="clash"))
        other = await factory.profile(username="clash")

        code = await generate_referral_code(db_session, other.user_id)
        assert code.created
        assert code.referral_code != "clash"
        assert len(code.referral_code) == 10

    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError, match="User"):
            await generate_referral_code(db_session, "ghost")

    async def test_sharing_links_embed_the_link(self, db_session, factory):
        profile = await factory.profile(username="sharer")
        links = await share_referral(db_session, profile.user_id)
        assert links.referral_code == "sharer"
        assert "register%3Fref%3Dsharer" in links.sharing_urls["facebook"]
        assert links.sharing_urls["twitter"].startswith("https://twitter.com/intent/tweet?text=Join%20me")
        assert set(links.sharing_urls) == {"twitter", "facebook", "whatsapp", "telegram", "linkedin", "email"}


@pytest.mark.asyncio
class TestProcessReferral:

    async def test_links_counts_and_credits(self, db_session, factory):
        referrer = await factory.profile(username="host", available_votes=3)
        newcomer = await factory.profile()
        code = await generate_referral_code(db_session, referrer.user_id)

        result = await process_referral(db_session, newcomer.user_id, code.referral_code)
        assert result.referrer_new_count == 1
        assert result.bonus_votes_awarded == 50
        assert result.tier_reached is None

        assert (await _user(db_session, newcomer.user_id)).referred_by_id == referrer.user_id
        assert (await _user(db_session, referrer.user_id)).referral_count == 1
        assert await _votes(db_session, referrer.id) == 53

    async def test_second_referrer_rejected(self, db_session, factory):
        first = await factory.profile(username="first")
        second = await factory.profile(username="second")
        newcomer = await factory.profile()
        await generate_referral_code(db_session, first.user_id)
        await generate_referral_code(db_session, second.user_id)

        await process_referral(db_session, newcomer.user_id, "first")
        with pytest.raises(ValidationError, match="already has a referrer"):
            await process_referral(db_session, newcomer.user_id, "second")

        assert (await _user(db_session, second.user_id)).referral_count == 0
        assert await _votes(db_session, second.id) == 0

    async def test_credit_is_relative_to_stored_balance(self, db_session, session_factory, factory):
        referrer = await factory.profile(username="busy", available_votes=10)
        newcomer = await factory.profile()
        await generate_referral_code(db_session, referrer.user_id)
        await factory.commit()

        async with session_factory() as other:
            await other.execute(
                update(Profile).where(Profile.id == referrer.id).values(available_votes=Profile.available_votes - 4)
            )
            await other.commit()

        await process_referral(db_session, newcomer.user_id, "busy")
        await db_session.commit()
        assert await _votes(db_session, referrer.id) == 56

    async def test_fifth_referral_reaches_bronze(self, db_session, factory):
        referrer = await factory.profile(username="climber")
        await generate_referral_code(db_session, referrer.user_id)
        for _ in range(4):
            await process_referral(db_session, (await factory.profile()).user_id, "climber")

        result = await process_referral(db_session, (await factory.profile()).user_id, "climber")
        assert result.referrer_new_count == 5
        assert result.tier_reached == "Bronze"

    async def test_invalid_code(self, db_session, factory):
        newcomer = await factory.profile()
        with pytest.raises(NotFoundError, match="Referral code"):
            await process_referral(db_session, newcomer.user_id, "nobody")

    async def test_self_referral(self, db_session, factory):
        profile = await factory.profile(username="selfie")
        await generate_referral_code(db_session, profile.user_id)
        with pytest.raises(ValidationError):
            await process_referral(db_session, profile.user_id, "selfie")


@pytest.mark.asyncio
class TestStatsAndLeaderboard:

    async def test_stats(self, db_session, factory, now):
        referrer = await factory.profile(username="mentor")
        await generate_referral_code(db_session, referrer.user_id)
        joined = []
        for n in range(7):
            newcomer = await factory.profile(name=f"Fan {n}")
            await db_session.execute(
                update(User).where(User.id == newcomer.user_id).values(created_at=now + timedelta(minutes=n))
            )
            await process_referral(db_session, newcomer.user_id, "mentor")
            joined.append(newcomer.user_id)

        stats = await get_referral_stats(db_session, referrer.user_id)
        assert stats.referral_code == "mentor"
        assert stats.total_referrals == 7
        assert [r.id for r in stats.referrals] == joined
        assert stats.current_tier.name == "Bronze"
        assert stats.next_tier.count == 10
        assert stats.progress.remaining == 3
        assert stats.progress.percentage == 70

    async def test_stats_without_code(self, db_session, factory):
        profile = await factory.profile()
        stats = await get_referral_stats(db_session, profile.user_id)
        assert stats.referral_code is None
        assert stats.referral_link is None
        assert stats.referrals == []
        assert stats.current_tier.name == "Starter"

    async def test_leaderboard(self, db_session, factory):
        profiles = [await factory.profile(username=f"rank{n}") for n in range(3)]
        for profile, count in zip(profiles, (2, 12, 0), strict=True):
            await db_session.execute(
                update(User).where(User.id == profile.user_id).values(referral_count=count)
            )

        entries, pagination = await referral_leaderboard(db_session, page=1, limit=10)
        assert [e.username for e in entries] == ["rank1", "rank0"]
        assert [e.rank for e in entries] == [1, 2]
        assert entries[0].profile_id == profiles[1].id
        assert entries[0].current_tier.name == "Silver"
        assert pagination["total"] == 2

        second_page, _ = await referral_leaderboard(db_session, page=2, limit=1)
        assert second_page[0].rank == 2


def test_no_progress_at_top_tier():
    assert tier_progress(150) is None
    assert tier_progress(1).percentage == 20
