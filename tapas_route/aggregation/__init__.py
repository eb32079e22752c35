"""Read-side aggregation: tapa ranking, raffle eligibility and passports."""

from .ranking import TapaRanking, compute_ranking, round_one_decimal
from .raffle import (
    Passport,
    PassportEntry,
    RaffleParticipant,
    build_passport,
    count_user_votes,
    event_tapa_ids,
    is_eligible,
    list_raffle_participants,
    qualified_vote_counts,
    votes_remaining,
)

__all__ = [
    'TapaRanking',
    'compute_ranking',
    'round_one_decimal',
    'Passport',
    'PassportEntry',
    'RaffleParticipant',
    'build_passport',
    'count_user_votes',
    'event_tapa_ids',
    'is_eligible',
    'list_raffle_participants',
    'qualified_vote_counts',
    'votes_remaining',
]
