"""PostgreSQL vote store."""
import asyncio
import json
import logging
from typing import List, Optional

import asyncpg

from ..shared.models import Event, Profile, Tapa, Venue, Vote
from .config import settings
from .store import (
    DuplicateVoteError,
    NotFoundError,
    VoteStore,
    VoteStoreError,
    VoteStoreTimeoutError,
)

logger = logging.getLogger(__name__)

VOTE_COLUMNS = "id, user_id, tapa_id, stars, validated_location, created_at"
VENUE_COLUMNS = "id, event_id, name, description, lat, lng, address, image_url, created_at"
TAPA_COLUMNS = "id, venue_id, name, description, price, image_url, created_at"
EVENT_COLUMNS = "id, name, slug, start_date, end_date, theme_colors, created_at"


def _vote_from_row(row) -> Vote:
    return Vote(
        id=row["id"],
        user_id=row["user_id"],
        tapa_id=row["tapa_id"],
        stars=row["stars"],
        validated_location=row["validated_location"],
        created_at=row["created_at"],
    )


def _venue_from_row(row) -> Venue:
    return Venue(
        id=row["id"],
        event_id=row["event_id"],
        name=row["name"],
        description=row["description"],
        lat=row["lat"],
        lng=row["lng"],
        address=row["address"],
        image_url=row["image_url"],
        created_at=row["created_at"],
    )


def _tapa_from_row(row) -> Tapa:
    return Tapa(
        id=row["id"],
        venue_id=row["venue_id"],
        name=row["name"],
        description=row["description"],
        price=row["price"],
        image_url=row["image_url"],
        created_at=row["created_at"],
    )


def _event_from_row(row) -> Event:
    theme_colors = row["theme_colors"]
    if isinstance(theme_colors, str):
        theme_colors = json.loads(theme_colors)
    return Event(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        theme_colors=theme_colors or {},
        created_at=row["created_at"],
    )


class Database(VoteStore):
    """Async PostgreSQL store backed by an asyncpg pool."""

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Initialize database connection pool."""
        try:
            self.pool = await asyncpg.create_pool(
                settings.postgres_dsn,
                min_size=settings.POSTGRES_POOL_MIN_SIZE,
                max_size=settings.POSTGRES_POOL_MAX_SIZE,
                command_timeout=settings.POSTGRES_COMMAND_TIMEOUT
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            # Verify connection
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                logger.info("PostgreSQL connection verified")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            raise

    async def _fetch(self, query: str, *args) -> list:
        try:
            async with self.pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except asyncio.TimeoutError:
            logger.error(f"Query timed out after {settings.POSTGRES_COMMAND_TIMEOUT}s")
            raise VoteStoreTimeoutError("Store query timed out")
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}")
            raise VoteStoreError(str(e))

    async def create_vote(
        self,
        user_id: str,
        tapa_id: str,
        stars: int,
        validated_location: bool = False
    ) -> Vote:
        """
        Insert a vote.

        Raises:
            DuplicateVoteError: the (user_id, tapa_id) pair already has a vote
            NotFoundError: the tapa does not exist
            VoteStoreTimeoutError: the insert did not complete in time
            VoteStoreError: any other failure
        """
        query = f"""
            INSERT INTO votes (user_id, tapa_id, stars, validated_location)
            VALUES ($1, $2, $3, $4)
            RETURNING {VOTE_COLUMNS}
        """
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(query, user_id, tapa_id, stars, validated_location)
                logger.info(f"Vote inserted: user_id={user_id}, tapa_id={tapa_id}, stars={stars}")
                return _vote_from_row(row)

        except asyncpg.UniqueViolationError:
            logger.warning(f"Duplicate vote rejected: user_id={user_id}, tapa_id={tapa_id}")
            raise DuplicateVoteError(user_id, tapa_id)
        except asyncpg.ForeignKeyViolationError:
            raise NotFoundError(f"Tapa {tapa_id} not found")
        except asyncio.TimeoutError:
            logger.error(f"Vote insert timed out: user_id={user_id}, tapa_id={tapa_id}")
            raise VoteStoreTimeoutError("Vote insert timed out")
        except asyncpg.PostgresError as e:
            logger.error(f"Error inserting vote: {e}")
            raise VoteStoreError(str(e))

    async def list_votes(self) -> List[Vote]:
        rows = await self._fetch(f"SELECT {VOTE_COLUMNS} FROM votes")
        return [_vote_from_row(row) for row in rows]

    async def list_votes_by_user(self, user_id: str) -> List[Vote]:
        rows = await self._fetch(
            f"SELECT {VOTE_COLUMNS} FROM votes WHERE user_id = $1 ORDER BY created_at DESC",
            user_id
        )
        return [_vote_from_row(row) for row in rows]

    async def list_votes_by_tapa_ids(self, tapa_ids: List[str]) -> List[Vote]:
        if not tapa_ids:
            return []
        rows = await self._fetch(
            f"SELECT {VOTE_COLUMNS} FROM votes WHERE tapa_id = ANY($1::text[])",
            list(tapa_ids)
        )
        return [_vote_from_row(row) for row in rows]

    async def get_tapa(self, tapa_id: str) -> Optional[Tapa]:
        rows = await self._fetch(f"SELECT {TAPA_COLUMNS} FROM tapas WHERE id = $1", tapa_id)
        return _tapa_from_row(rows[0]) if rows else None

    async def get_venue(self, venue_id: str) -> Optional[Venue]:
        rows = await self._fetch(f"SELECT {VENUE_COLUMNS} FROM venues WHERE id = $1", venue_id)
        return _venue_from_row(rows[0]) if rows else None

    async def list_venues(self, event_id: Optional[str] = None) -> List[Venue]:
        if event_id is None:
            rows = await self._fetch(f"SELECT {VENUE_COLUMNS} FROM venues ORDER BY name")
        else:
            rows = await self._fetch(
                f"SELECT {VENUE_COLUMNS} FROM venues WHERE event_id = $1 ORDER BY name",
                event_id
            )
        return [_venue_from_row(row) for row in rows]

    async def list_tapas(self, venue_ids: Optional[List[str]] = None) -> List[Tapa]:
        if venue_ids is None:
            rows = await self._fetch(f"SELECT {TAPA_COLUMNS} FROM tapas ORDER BY created_at, id")
        elif not venue_ids:
            return []
        else:
            rows = await self._fetch(
                f"SELECT {TAPA_COLUMNS} FROM tapas WHERE venue_id = ANY($1::text[]) "
                f"ORDER BY created_at, id",
                list(venue_ids)
            )
        return [_tapa_from_row(row) for row in rows]

    async def list_events(self) -> List[Event]:
        rows = await self._fetch(f"SELECT {EVENT_COLUMNS} FROM events ORDER BY created_at DESC")
        return [_event_from_row(row) for row in rows]

    async def get_event_by_slug(self, slug: str) -> Optional[Event]:
        rows = await self._fetch(f"SELECT {EVENT_COLUMNS} FROM events WHERE slug = $1", slug)
        return _event_from_row(rows[0]) if rows else None

    async def list_profiles(self, user_ids: List[str]) -> List[Profile]:
        if not user_ids:
            return []
        rows = await self._fetch(
            "SELECT user_id, email FROM profiles WHERE user_id = ANY($1::text[])",
            list(user_ids)
        )
        return [Profile(user_id=row["user_id"], email=row["email"]) for row in rows]

    async def check_health(self) -> bool:
        """Check database connection health."""
        try:
            if not self.pool:
                return False
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")


# Global database instance
database = Database()
