"""Durable per-session storage: the pending vote slot and the dev-mode flag."""

import json
import logging
from typing import Optional

import redis.asyncio as redis

from ..shared.models import PendingVote, get_storage_key
from .config import Config

logger = logging.getLogger(__name__)


def create_redis_client() -> redis.Redis:
    """Redis client for session storage, built from Config."""
    return redis.from_url(
        Config.get_redis_url(),
        encoding="utf-8",
        decode_responses=True
    )


class PendingVoteCache:
    """
    Single-slot store for a vote staged before sign-in.

    The slot survives process restarts. Writes are last-write-wins: staging
    a second vote replaces the first.
    """

    def __init__(self, client: redis.Redis, session_id: str = Config.SESSION_ID):
        self.client = client
        self.key = get_storage_key('pending_vote', session_id)

    async def get(self) -> Optional[PendingVote]:
        """
        Read the staged vote.

        Returns:
            The PendingVote, or None if the slot is empty. A corrupt entry
            is discarded and reported as empty.
        """
        try:
            stored = await self.client.get(self.key)
        except redis.RedisError as e:
            logger.error(f"Redis error reading pending vote: {e}")
            raise

        if not stored:
            return None

        try:
            return PendingVote.from_json(stored)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding unreadable pending vote: {e}")
            await self.clear()
            return None

    async def set(self, vote: Optional[PendingVote]) -> None:
        """Stage a vote, replacing any previous one. None clears the slot."""
        if vote is None:
            await self.clear()
            return

        try:
            previous = await self.client.get(self.key)
            if previous:
                logger.warning(f"Overwriting staged vote in {self.key}")
            await self.client.set(self.key, vote.to_json())
            logger.info(f"Vote staged: tapa_id={vote.tapa_id}, stars={vote.stars}")
        except redis.RedisError as e:
            logger.error(f"Redis error staging pending vote: {e}")
            raise

    async def clear(self) -> None:
        """Empty the slot."""
        try:
            await self.client.delete(self.key)
        except redis.RedisError as e:
            logger.error(f"Redis error clearing pending vote: {e}")
            raise


class DevModeFlag:
    """Durable override that bypasses the proximity gate."""

    def __init__(self, client: redis.Redis, session_id: str = Config.SESSION_ID):
        self.client = client
        self.key = get_storage_key('dev_mode', session_id)

    async def is_enabled(self) -> bool:
        stored = await self.client.get(self.key)
        return stored == "true"

    async def set(self, enabled: bool) -> None:
        await self.client.set(self.key, json.dumps(enabled))
        logger.info(f"Dev mode {'enabled' if enabled else 'disabled'}")

    async def toggle(self) -> bool:
        """Flip the flag and return the new value."""
        enabled = not await self.is_enabled()
        await self.set(enabled)
        return enabled
