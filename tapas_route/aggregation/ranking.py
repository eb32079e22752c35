"""
Tapa ranking aggregation.

Computes average stars and vote counts per tapa from raw vote records and
venue/tapa reference data. Read-side only: no caching, no side effects.
"""
import logging
import math
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Any

from ..shared.models import Tapa, Venue, Vote, DEFAULT_RANKING_LIMIT, UNKNOWN_VENUE_NAME

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TapaRanking:
    """One row of the ranking table."""
    tapa_id: str
    name: str
    image_url: Optional[str]
    venue_id: str
    venue_name: str
    avg_stars: float
    vote_count: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def round_one_decimal(value: float) -> float:
    """Round half-up to one decimal place (2.25 -> 2.3)."""
    return math.floor(value * 10 + 0.5) / 10


def compute_ranking(
    votes: Iterable[Vote],
    tapas: Iterable[Tapa],
    venues: Iterable[Venue],
    event_id: Optional[str] = None,
    limit: int = DEFAULT_RANKING_LIMIT
) -> List[TapaRanking]:
    """
    Rank tapas by average stars, then by vote count.

    Args:
        votes: Vote records (any superset of the scoped tapas' votes)
        tapas: Tapa reference data
        venues: Venue reference data
        event_id: Restrict to venues of this event; None ranks globally
        limit: Maximum number of rows to return

    Returns:
        List of TapaRanking, best first. Tapas without votes are excluded.
    """
    venue_list = list(venues)
    if event_id is not None:
        venue_list = [v for v in venue_list if v.event_id == event_id]
    venues_by_id = {v.id: v for v in venue_list}

    if event_id is not None:
        scoped_tapas = [t for t in tapas if t.venue_id in venues_by_id]
    else:
        scoped_tapas = list(tapas)

    if not scoped_tapas:
        return []

    # Aggregate stars per tapa
    totals: Dict[str, List[int]] = {}
    for vote in votes:
        stats = totals.setdefault(vote.tapa_id, [0, 0])
        stats[0] += vote.stars
        stats[1] += 1

    rows = []
    for tapa in scoped_tapas:
        star_sum, count = totals.get(tapa.id, (0, 0))
        if count == 0:
            continue

        venue = venues_by_id.get(tapa.venue_id)
        rows.append(TapaRanking(
            tapa_id=tapa.id,
            name=tapa.name,
            image_url=tapa.image_url,
            venue_id=tapa.venue_id,
            venue_name=venue.name if venue else UNKNOWN_VENUE_NAME,
            avg_stars=round_one_decimal(star_sum / count),
            vote_count=count,
        ))

    rows.sort(key=lambda r: (-r.avg_stars, -r.vote_count))

    logger.debug(f"Ranking computed: {len(rows)} tapas with votes, event_id={event_id}")
    return rows[:max(limit, 0)]
