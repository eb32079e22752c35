"""Tests for the asyncpg vote store's error mapping, using a fake pool."""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import asyncpg
import pytest

from tapas_route.voting_api.database import Database
from tapas_route.voting_api.store import (
    DuplicateVoteError,
    NotFoundError,
    VoteStoreTimeoutError,
)


class FakeConnection:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.queries = []

    async def _run(self, query, *args):
        self.queries.append((query, args))
        if self.error is not None:
            raise self.error
        return self.result

    fetchrow = _run
    fetch = _run
    fetchval = _run


class FakePool:
    def __init__(self, connection: FakeConnection):
        self.connection = connection

    @asynccontextmanager
    async def acquire(self):
        yield self.connection


def database_with(**kwargs) -> Database:
    db = Database()
    db.pool = FakePool(FakeConnection(**kwargs))
    return db


@pytest.mark.asyncio
class TestCreateVote:
    """Tests for Database.create_vote."""

    async def test_returns_vote(self):
        row = {
            "id": "v1",
            "user_id": "u1",
            "tapa_id": "t1",
            "stars": 4,
            "validated_location": True,
            "created_at": datetime(2026, 2, 1, tzinfo=timezone.utc),
        }
        db = database_with(result=row)

        vote = await db.create_vote("u1", "t1", 4, validated_location=True)

        assert vote.id == "v1"
        assert vote.validated_location is True
        _, args = db.pool.connection.queries[0]
        assert args == ("u1", "t1", 4, True)

    async def test_unique_violation_is_duplicate(self):
        db = database_with(error=asyncpg.UniqueViolationError("votes_user_tapa_unique"))

        with pytest.raises(DuplicateVoteError) as exc_info:
            await db.create_vote("u1", "t1", 4)

        assert exc_info.value.kind.value == "DUPLICATE"

    async def test_foreign_key_violation_is_not_found(self):
        db = database_with(error=asyncpg.ForeignKeyViolationError("votes_tapa_id_fkey"))

        with pytest.raises(NotFoundError):
            await db.create_vote("u1", "missing", 4)

    async def test_timeout_is_retryable(self):
        db = database_with(error=asyncio.TimeoutError())

        with pytest.raises(VoteStoreTimeoutError) as exc_info:
            await db.create_vote("u1", "t1", 4)

        assert exc_info.value.retryable is True


@pytest.mark.asyncio
class TestQueries:
    """Tests for read queries."""

    async def test_empty_id_lists_skip_query(self):
        db = database_with(result=[])

        assert await db.list_votes_by_tapa_ids([]) == []
        assert await db.list_tapas([]) == []
        assert await db.list_profiles([]) == []
        assert db.pool.connection.queries == []

    async def test_read_timeout(self):
        db = database_with(error=asyncio.TimeoutError())

        with pytest.raises(VoteStoreTimeoutError):
            await db.list_votes_by_user("u1")

    async def test_event_theme_colors_decoded(self):
        row = {
            "id": "e1",
            "name": "Ruta",
            "slug": "ruta",
            "start_date": datetime(2026, 2, 1).date(),
            "end_date": datetime(2026, 2, 15).date(),
            "theme_colors": '{"primary": "#c2410c"}',
            "created_at": None,
        }
        db = database_with(result=[row])

        [event] = await db.list_events()

        assert event.theme_colors == {"primary": "#c2410c"}

    async def test_health_without_pool(self):
        db = Database()
        assert await db.check_health() is False
