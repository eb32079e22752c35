"""
Shared utilities and models for the tapas route voting system.

This package contains common code used across all services:
- Data models (Event, Venue, Tapa, Vote, PendingVote, enums)
- Distance validation utilities
- Validation functions
- Durable storage key constants
"""

from .models import (
    Event,
    Venue,
    Tapa,
    Vote,
    Profile,
    PendingVote,
    DistanceValidationResult,
    VoteErrorKind,
    LocationErrorReason,
    validate_stars,
    validate_slug,
    find_active_event,
    get_venue_qr_url,
    get_today,
    get_current_timestamp,
    get_storage_key,
    STORAGE_KEYS,
    RAFFLE_THRESHOLD,
    DEFAULT_RANKING_LIMIT,
    DEFAULT_MAX_DISTANCE_METERS,
    UNKNOWN_TAPA_NAME,
    UNKNOWN_VENUE_NAME,
)
from .geo import calculate_haversine_distance, validate_distance, format_distance

__all__ = [
    'Event',
    'Venue',
    'Tapa',
    'Vote',
    'Profile',
    'PendingVote',
    'DistanceValidationResult',
    'VoteErrorKind',
    'LocationErrorReason',
    'validate_stars',
    'validate_slug',
    'find_active_event',
    'get_venue_qr_url',
    'get_today',
    'get_current_timestamp',
    'get_storage_key',
    'STORAGE_KEYS',
    'RAFFLE_THRESHOLD',
    'DEFAULT_RANKING_LIMIT',
    'DEFAULT_MAX_DISTANCE_METERS',
    'UNKNOWN_TAPA_NAME',
    'UNKNOWN_VENUE_NAME',
    'calculate_haversine_distance',
    'validate_distance',
    'format_distance',
]
