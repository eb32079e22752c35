"""Tests for durable session storage."""

import pytest
import redis.asyncio as redis

from tapas_route.shared.models import PendingVote
from tapas_route.voting_client.storage import DevModeFlag, PendingVoteCache


def pending(tapa_id="tapa-croqueta", stars=4):
    return PendingVote(
        tapa_id=tapa_id,
        tapa_name="Croqueta de jamón",
        venue_id="venue-plaza",
        venue_name="Bar La Plaza",
        stars=stars,
    )


@pytest.mark.asyncio
class TestPendingVoteCache:
    """Tests for the single-slot pending vote store."""

    async def test_empty_slot(self, pending_votes: PendingVoteCache):
        assert await pending_votes.get() is None

    async def test_set_and_get(self, pending_votes: PendingVoteCache):
        await pending_votes.set(pending())
        assert await pending_votes.get() == pending()

    async def test_last_write_wins(self, pending_votes: PendingVoteCache):
        await pending_votes.set(pending("tapa-croqueta", 4))
        await pending_votes.set(pending("tapa-tortilla", 2))

        stored = await pending_votes.get()
        assert stored.tapa_id == "tapa-tortilla"
        assert stored.stars == 2

    async def test_set_none_clears(self, pending_votes: PendingVoteCache):
        await pending_votes.set(pending())
        await pending_votes.set(None)
        assert await pending_votes.get() is None

    async def test_survives_new_cache_instance(self, fake_redis, pending_votes: PendingVoteCache):
        await pending_votes.set(pending())
        reopened = PendingVoteCache(fake_redis, session_id="test-session")
        assert await reopened.get() == pending()

    async def test_sessions_are_isolated(self, fake_redis, pending_votes: PendingVoteCache):
        await pending_votes.set(pending())
        other = PendingVoteCache(fake_redis, session_id="other-session")
        assert await other.get() is None

    async def test_corrupt_entry_discarded(self, fake_redis, pending_votes: PendingVoteCache):
        fake_redis.data[pending_votes.key] = "{not json"
        assert await pending_votes.get() is None
        assert pending_votes.key not in fake_redis.data

    async def test_redis_errors_propagate(self, fake_redis, pending_votes: PendingVoteCache):
        fake_redis.fail = True
        with pytest.raises(redis.RedisError):
            await pending_votes.set(pending())


@pytest.mark.asyncio
class TestDevModeFlag:
    """Tests for the developer override flag."""

    async def test_disabled_by_default(self, dev_mode: DevModeFlag):
        assert await dev_mode.is_enabled() is False

    async def test_toggle(self, fake_redis, dev_mode: DevModeFlag):
        assert await dev_mode.toggle() is True
        assert fake_redis.data[dev_mode.key] == "true"
        assert await dev_mode.is_enabled() is True

        assert await dev_mode.toggle() is False
        assert await dev_mode.is_enabled() is False

    async def test_key_name(self, dev_mode: DevModeFlag):
        assert dev_mode.key == "tapea_dev_mode:test-session"
