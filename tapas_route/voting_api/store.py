"""Vote store interface and error types.

Stores must be swappable and return domain models. The uniqueness of
(user_id, tapa_id) is enforced by the store itself; callers rely on
DuplicateVoteError rather than on any pre-check they may have done.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..shared.models import Event, Profile, Tapa, Venue, Vote, VoteErrorKind


class VoteStoreError(Exception):
    """Base error for vote store operations."""

    kind = VoteErrorKind.OTHER
    retryable = False


class DuplicateVoteError(VoteStoreError):
    """Raised when the user already has a vote for the tapa."""

    kind = VoteErrorKind.DUPLICATE

    def __init__(self, user_id: str, tapa_id: str):
        super().__init__("Ya has votado esta tapa")
        self.user_id = user_id
        self.tapa_id = tapa_id


class VoteStoreTimeoutError(VoteStoreError):
    """Raised when the store did not answer in time; the write may have landed."""

    retryable = True


class NotFoundError(VoteStoreError):
    """Raised when a referenced record does not exist."""


class VoteStore(ABC):
    """Interface for vote and reference-data persistence."""

    @abstractmethod
    async def create_vote(
        self,
        user_id: str,
        tapa_id: str,
        stars: int,
        validated_location: bool = False
    ) -> Vote:
        """Insert a vote. Raises DuplicateVoteError on (user, tapa) conflict."""
        ...

    @abstractmethod
    async def list_votes(self) -> List[Vote]:
        """Return all votes."""
        ...

    @abstractmethod
    async def list_votes_by_user(self, user_id: str) -> List[Vote]:
        """Return a user's votes ordered by created_at descending."""
        ...

    @abstractmethod
    async def list_votes_by_tapa_ids(self, tapa_ids: List[str]) -> List[Vote]:
        """Return all votes for the given tapas."""
        ...

    @abstractmethod
    async def get_tapa(self, tapa_id: str) -> Optional[Tapa]:
        """Return a tapa by ID, or None if not found."""
        ...

    @abstractmethod
    async def get_venue(self, venue_id: str) -> Optional[Venue]:
        """Return a venue by ID, or None if not found."""
        ...

    @abstractmethod
    async def list_venues(self, event_id: Optional[str] = None) -> List[Venue]:
        """Return venues ordered by name, optionally for one event."""
        ...

    @abstractmethod
    async def list_tapas(self, venue_ids: Optional[List[str]] = None) -> List[Tapa]:
        """Return tapas in venue order (created_at ascending)."""
        ...

    @abstractmethod
    async def list_events(self) -> List[Event]:
        """Return all events ordered by created_at descending."""
        ...

    @abstractmethod
    async def get_event_by_slug(self, slug: str) -> Optional[Event]:
        """Return an event by slug, or None if not found."""
        ...

    @abstractmethod
    async def list_profiles(self, user_ids: List[str]) -> List[Profile]:
        """Return profiles for the given users; unknown users are skipped."""
        ...

    @abstractmethod
    async def check_health(self) -> bool:
        """Check the store is reachable."""
        ...
