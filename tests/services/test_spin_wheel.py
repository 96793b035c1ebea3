"""Spin wheel service: cooldowns, grants, claims and token races."""

import random
from datetime import timedelta

import pytest
from sqlalchemy import select, update

from swingvote.db.models import ActiveSpinPrize, PrizeType, Profile, SpinWheelHistory
from swingvote.errors import ConcurrentClaimConflict, CooldownActive, NotFoundError, ValidationError
from swingvote.spin_wheel.service import (
    activate_multiplier_token,
    can_spin,
    claim_prize,
    consume_multiplier_token,
    list_active_prizes,
    spin,
    spin_history,
)


async def _prize(db, prize_id):
    return (await db.execute(
        select(ActiveSpinPrize).where(ActiveSpinPrize.id == prize_id).execution_options(populate_existing=True)
    )).scalar_one()


@pytest.mark.asyncio
class TestSpin:

    async def test_bonus_votes_credit_profile(self, db_session, factory, now):
        profile = await factory.profile(available_votes=5)
        await factory.reward(reward_type=PrizeType.BONUS_VOTES, reward_value=50)

        result = await spin(db_session, profile.id, now, random.Random(1))
        assert result.prize_id is None
        assert result.reward.reward_type == PrizeType.BONUS_VOTES
        assert profile.available_votes == 55

        history = (await db_session.execute(select(SpinWheelHistory))).scalars().all()
        assert len(history) == 1
        assert history[0].spun_at == now

    async def test_bonus_votes_default(self, db_session, factory, now):
        profile = await factory.profile()
        await factory.reward(reward_type=PrizeType.BONUS_VOTES)
        await spin(db_session, profile.id, now)
        assert profile.available_votes == 100

    async def test_bonus_votes_keep_concurrent_spend(self, db_session, session_factory, factory, now):
        profile = await factory.profile(available_votes=5)
        await factory.reward(reward_type=PrizeType.BONUS_VOTES, reward_value=50)
        await factory.commit()

        async with session_factory() as other:
            await other.execute(
                update(Profile).where(Profile.id == profile.id).values(available_votes=Profile.available_votes - 3)
            )
            await other.commit()

        # db_session still holds the stale in-memory value of 5
        assert profile.available_votes == 5
        await spin(db_session, profile.id, now)
        await db_session.commit()

        assert profile.available_votes == 52
        stored = await db_session.scalar(select(Profile.available_votes).where(Profile.id == profile.id))
        assert stored == 52

    async def test_cooldown(self, db_session, factory, now):
        profile = await factory.profile()
        await factory.reward(reward_type=PrizeType.BONUS_VOTES, reward_value=1)
        await spin(db_session, profile.id, now)

        with pytest.raises(CooldownActive) as excinfo:
            await spin(db_session, profile.id, now + timedelta(hours=23))
        assert excinfo.value.next_available_at == now + timedelta(hours=24)

        await spin(db_session, profile.id, now + timedelta(hours=24))

    async def test_retry_prize_bypasses_cooldown(self, db_session, factory, now):
        profile = await factory.profile()
        await factory.reward(reward_type=PrizeType.BONUS_VOTES, reward_value=1)
        await spin(db_session, profile.id, now)
        retry = await factory.prize(profile=profile, prize_type=PrizeType.FREE_RETRY_SPIN, prize_value=1)

        await spin(db_session, profile.id, now + timedelta(minutes=5))

        retry = await _prize(db_session, retry.id)
        assert retry.is_claimed
        assert not retry.is_active

    async def test_no_rewards(self, db_session, factory, now):
        profile = await factory.profile()
        with pytest.raises(ValidationError):
            await spin(db_session, profile.id, now)

    async def test_accepts_user_id(self, db_session, factory, now):
        profile = await factory.profile()
        await factory.reward(reward_type=PrizeType.EXCLUSIVE_BADGE)
        result = await spin(db_session, profile.user_id, now)
        prize = await _prize(db_session, result.prize_id)
        assert prize.profile_id == profile.id

    async def test_unknown_profile(self, db_session, now):
        with pytest.raises(NotFoundError):
            await spin(db_session, "missing", now)

    @pytest.mark.parametrize(("reward_type", "reward_value", "claimed", "value", "expiry_days"), [
        (PrizeType.VOTE_MULTIPLIER, None, True, None, 3),
        (PrizeType.VOTE_MULTIPLIER, 5, True, 5, 5),
        (PrizeType.VOTE_MULTIPLIER_TOKEN, None, False, 10, None),
        (PrizeType.FREE_RETRY_SPIN, None, False, 1, None),
        (PrizeType.MAGAZINE_FOLLOW_BACK, None, False, 30, 30),
        (PrizeType.EXCLUSIVE_BADGE, None, True, None, None),
        (PrizeType.PERSONAL_MESSAGE, None, False, None, None),
        (PrizeType.MEET_GREET_DISCOUNT, 20, False, 20, None),
    ])
    async def test_grants(self, db_session, factory, now, reward_type, reward_value, claimed, value, expiry_days):
        profile = await factory.profile()
        await factory.reward(reward_type=reward_type, reward_value=reward_value)

        result = await spin(db_session, profile.id, now)
        prize = await _prize(db_session, result.prize_id)
        assert prize.prize_type == reward_type
        assert prize.is_claimed is claimed
        assert prize.prize_value == value
        if expiry_days is None:
            assert prize.expires_at is None
        else:
            assert prize.expires_at == now + timedelta(days=expiry_days)


@pytest.mark.asyncio
class TestCanSpin:

    async def test_first_time(self, db_session, factory, now):
        profile = await factory.profile()
        status = await can_spin(db_session, profile.id, now)
        assert status.can_spin
        assert status.next_spin_at is None
        assert not status.has_retry_prize

    async def test_after_spin(self, db_session, factory, now):
        profile = await factory.profile()
        await factory.reward(reward_type=PrizeType.BONUS_VOTES, reward_value=1)
        await spin(db_session, profile.id, now)
        status = await can_spin(db_session, profile.id, now + timedelta(hours=1))
        assert not status.can_spin
        assert status.next_spin_at == now + timedelta(hours=24)

    async def test_retry_prize(self, db_session, factory, now):
        profile = await factory.profile()
        retry = await factory.prize(profile=profile, prize_type=PrizeType.FREE_RETRY_SPIN, prize_value=1)
        status = await can_spin(db_session, profile.id, now)
        assert status.can_spin
        assert status.retry_prize_id == retry.id


@pytest.mark.asyncio
class TestClaimPrize:

    async def test_claim_once(self, db_session, factory, now):
        profile = await factory.profile()
        prize = await factory.prize(profile=profile, prize_type=PrizeType.INSTAGRAM_FEATURE)

        claimed = await claim_prize(db_session, prize.id, now)
        assert claimed.is_claimed
        assert claimed.claimed_at == now

        with pytest.raises(ConcurrentClaimConflict):
            await claim_prize(db_session, prize.id, now)

    async def test_badge_claim_is_idempotent(self, db_session, factory, now):
        profile = await factory.profile()
        prize = await factory.prize(profile=profile, prize_type=PrizeType.EXCLUSIVE_BADGE, claimed=True)
        assert (await claim_prize(db_session, prize.id, now)).is_claimed
        assert (await claim_prize(db_session, prize.id, now)).is_active

    async def test_expired(self, db_session, factory, now):
        profile = await factory.profile()
        prize = await factory.prize(
            profile=profile, prize_type=PrizeType.MAGAZINE_FOLLOW_BACK, expires_at=now - timedelta(days=1),
        )
        with pytest.raises(ValidationError):
            await claim_prize(db_session, prize.id, now)

    async def test_missing(self, db_session, now):
        with pytest.raises(NotFoundError):
            await claim_prize(db_session, "missing", now)


@pytest.mark.asyncio
class TestMultiplierTokens:

    async def test_activate_leaves_token_for_next_vote(self, db_session, factory, now):
        profile = await factory.profile()
        token = await factory.prize(profile=profile, prize_type=PrizeType.VOTE_MULTIPLIER_TOKEN, prize_value=10)

        activation = await activate_multiplier_token(db_session, profile.id, token.id, now)
        assert activation.multiplier == 10
        assert not (await _prize(db_session, token.id)).is_claimed

    async def test_activate_other_profiles_token(self, db_session, factory, now):
        owner = await factory.profile()
        other = await factory.profile()
        token = await factory.prize(profile=owner, prize_type=PrizeType.VOTE_MULTIPLIER_TOKEN, prize_value=10)
        with pytest.raises(ValidationError):
            await activate_multiplier_token(db_session, other.id, token.id, now)

    async def test_activate_wrong_type(self, db_session, factory, now):
        profile = await factory.profile()
        prize = await factory.prize(profile=profile, prize_type=PrizeType.FREE_RETRY_SPIN)
        with pytest.raises(ValidationError):
            await activate_multiplier_token(db_session, profile.id, prize.id, now)

    async def test_consume_twice(self, db_session, factory, now):
        profile = await factory.profile()
        token = await factory.prize(profile=profile, prize_type=PrizeType.VOTE_MULTIPLIER_TOKEN, prize_value=10)

        assert await consume_multiplier_token(db_session, token.id, now) == 10
        with pytest.raises(ConcurrentClaimConflict):
            await consume_multiplier_token(db_session, token.id, now)

    async def test_concurrent_consume_loses_race(self, db_session, session_factory, factory, now):
        """A session holding a stale unclaimed copy still cannot claim twice."""
        profile = await factory.profile()
        token = await factory.prize(profile=profile, prize_type=PrizeType.VOTE_MULTIPLIER_TOKEN, prize_value=10)
        await factory.commit()

        async with session_factory() as other:
            assert await consume_multiplier_token(other, token.id, now) == 10
            await other.commit()

        assert token.is_claimed is False  # stale copy in the first session
        with pytest.raises(ConcurrentClaimConflict):
            await consume_multiplier_token(db_session, token.id, now)


@pytest.mark.asyncio
class TestListings:

    async def test_active_prizes_hide_expired(self, db_session, factory, now):
        profile = await factory.profile()
        live = await factory.prize(profile=profile, prize_type=PrizeType.PERSONAL_MESSAGE)
        await factory.prize(
            profile=profile, prize_type=PrizeType.MAGAZINE_FOLLOW_BACK, expires_at=now - timedelta(days=1),
        )
        await factory.prize(profile=profile, prize_type=PrizeType.FREE_RETRY_SPIN, active=False)

        prizes = await list_active_prizes(db_session, profile.id, now=now)
        assert [p.id for p in prizes] == [live.id]
        assert len(await list_active_prizes(db_session, profile.id, include_expired=True, now=now)) == 2

    async def test_history_paginated(self, db_session, factory, now):
        profile = await factory.profile()
        await factory.reward(reward_type=PrizeType.BONUS_VOTES, reward_value=1)
        for day in range(3):
            await spin(db_session, profile.id, now + timedelta(days=day))

        rows, pagination = await spin_history(db_session, profile.id, page=1, limit=2)
        assert len(rows) == 2
        assert rows[0].spun_at == now + timedelta(days=2)
        assert pagination["total"] == 3
        assert pagination["totalPages"] == 2
