"""
Raffle eligibility and passport views.

A user enters the raffle once they have voted at least RAFFLE_THRESHOLD
distinct tapas. The threshold is inclusive and fixed.
"""
import logging
from collections import Counter
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Any

from ..shared.models import (
    Profile,
    Tapa,
    Venue,
    Vote,
    RAFFLE_THRESHOLD,
    UNKNOWN_TAPA_NAME,
    UNKNOWN_VENUE_NAME,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RaffleParticipant:
    """A user who qualifies for the raffle."""
    user_id: str
    email: Optional[str]
    vote_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PassportEntry:
    """One voted tapa in a user's passport."""
    vote_id: str
    stars: int
    created_at: Optional[datetime]
    tapa_id: str
    tapa_name: str
    tapa_image_url: Optional[str]
    venue_id: str
    venue_name: str


@dataclass(frozen=True)
class Passport:
    """A user's voted tapas plus raffle progress."""
    user_id: str
    entries: List[PassportEntry]
    vote_count: int
    votes_remaining: int
    raffle_eligible: bool


def _sort_timestamp(value: Optional[datetime]) -> float:
    return value.timestamp() if value else float("-inf")


def is_eligible(vote_count: int, threshold: int = RAFFLE_THRESHOLD) -> bool:
    """Return True once vote_count reaches the threshold (inclusive)."""
    return vote_count >= threshold


def votes_remaining(vote_count: int, threshold: int = RAFFLE_THRESHOLD) -> int:
    """Votes still needed to enter the raffle, never negative."""
    return max(threshold - vote_count, 0)


def event_tapa_ids(tapas: Iterable[Tapa], venues: Iterable[Venue], event_id: str) -> Set[str]:
    """Identifiers of tapas served by venues of the given event."""
    venue_ids = {v.id for v in venues if v.event_id == event_id}
    return {t.id for t in tapas if t.venue_id in venue_ids}


def count_user_votes(
    votes: Iterable[Vote],
    user_id: str,
    tapa_ids: Optional[Set[str]] = None
) -> int:
    """
    Count a user's votes, optionally restricted to a set of tapas.

    Args:
        votes: Vote records
        user_id: User to count for
        tapa_ids: Only count votes for these tapas (event scope)

    Returns:
        int: Number of votes
    """
    return sum(
        1 for vote in votes
        if vote.user_id == user_id and (tapa_ids is None or vote.tapa_id in tapa_ids)
    )


def qualified_vote_counts(
    votes: Iterable[Vote],
    threshold: int = RAFFLE_THRESHOLD
) -> Dict[str, int]:
    """Vote count per user, for users that reach the raffle threshold."""
    vote_counts = Counter(vote.user_id for vote in votes)
    return {user_id: count for user_id, count in vote_counts.items() if is_eligible(count, threshold)}


def list_raffle_participants(
    votes: Iterable[Vote],
    profiles: Iterable[Profile],
    threshold: int = RAFFLE_THRESHOLD
) -> List[RaffleParticipant]:
    """
    List users eligible for the raffle.

    Votes are grouped by user and filtered by the threshold, then joined
    against profiles. Qualified users without a profile are left out.

    Args:
        votes: All vote records (global, not event-scoped)
        profiles: Profile reference data
        threshold: Minimum number of votes

    Returns:
        List of RaffleParticipant in profile order
    """
    qualified = qualified_vote_counts(votes, threshold)

    if not qualified:
        return []

    participants = [
        RaffleParticipant(
            user_id=profile.user_id,
            email=profile.email,
            vote_count=qualified[profile.user_id],
        )
        for profile in profiles
        if profile.user_id in qualified
    ]

    missing = len(qualified) - len(participants)
    if missing:
        logger.warning(f"{missing} qualified user(s) have no profile and were excluded")

    return participants


def build_passport(
    user_id: str,
    votes: Iterable[Vote],
    tapas: Iterable[Tapa],
    venues: Iterable[Venue],
    event_id: Optional[str] = None
) -> Passport:
    """
    Build the passport view for a user.

    Args:
        user_id: Passport owner
        votes: Vote records (only the owner's are used)
        tapas: Tapa reference data
        venues: Venue reference data
        event_id: Restrict to tapas of this event

    Returns:
        Passport with entries newest first
    """
    tapas_by_id = {t.id: t for t in tapas}
    venues_by_id = {v.id: v for v in venues}

    scope = None
    if event_id is not None:
        scope = event_tapa_ids(tapas_by_id.values(), venues_by_id.values(), event_id)

    user_votes = [
        v for v in votes
        if v.user_id == user_id and (scope is None or v.tapa_id in scope)
    ]
    user_votes.sort(key=lambda v: _sort_timestamp(v.created_at), reverse=True)

    entries = []
    for vote in user_votes:
        tapa = tapas_by_id.get(vote.tapa_id)
        venue = venues_by_id.get(tapa.venue_id) if tapa else None
        entries.append(PassportEntry(
            vote_id=vote.id,
            stars=vote.stars,
            created_at=vote.created_at,
            tapa_id=tapa.id if tapa else "",
            tapa_name=tapa.name if tapa else UNKNOWN_TAPA_NAME,
            tapa_image_url=tapa.image_url if tapa else None,
            venue_id=venue.id if venue else "",
            venue_name=venue.name if venue else UNKNOWN_VENUE_NAME,
        ))

    count = len(entries)
    return Passport(
        user_id=user_id,
        entries=entries,
        vote_count=count,
        votes_remaining=votes_remaining(count),
        raffle_eligible=is_eligible(count),
    )
