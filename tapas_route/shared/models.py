"""
Shared data models and utilities for the tapas route voting system.

This module contains:
- Domain records: Event, Venue, Tapa, Vote, PendingVote, Profile
- Enums for vote error kinds and location failure reasons
- Event activity helpers and format validation functions
- Durable client-side storage key helpers
"""

import json
import re
from dataclasses import dataclass, asdict, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any, List


# Fixed business constants
MIN_STARS = 1
MAX_STARS = 5
RAFFLE_THRESHOLD = 3
DEFAULT_RANKING_LIMIT = 5
DEFAULT_MAX_DISTANCE_METERS = 100

SLUG_PATTERN = re.compile(r'^[a-z0-9-]+$')

UNKNOWN_TAPA_NAME = "Tapa desconocida"
UNKNOWN_VENUE_NAME = "Local desconocido"


class VoteErrorKind(str, Enum):
    """Failure kinds reported by the vote store on create."""
    DUPLICATE = "DUPLICATE"
    OTHER = "OTHER"


class LocationErrorReason(str, Enum):
    """Closed set of reasons a position request can fail."""
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class Event:
    """
    A time-boxed tapas route.

    Attributes:
        id: Event identifier
        name: Display name
        slug: URL slug, unique, lowercase letters, digits and dashes
        start_date: First active day (inclusive)
        end_date: Last active day (inclusive)
        theme_colors: Cosmetic colors, not used by the core
        created_at: Creation timestamp, used to pick the most recent event
    """
    id: str
    name: str
    slug: str
    start_date: date
    end_date: date
    theme_colors: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def is_active(self, today: Optional[date] = None) -> bool:
        """Return True if today falls within [start_date, end_date]."""
        if today is None:
            today = get_today()
        return self.start_date <= today <= self.end_date


@dataclass(frozen=True)
class Venue:
    """A participating establishment with its coordinates."""
    id: str
    event_id: str
    name: str
    lat: float
    lng: float
    address: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Tapa:
    """A dish served by a venue; the subject of voting."""
    id: str
    venue_id: str
    name: str
    price: Decimal = Decimal("0")
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError("Tapa price cannot be negative")


@dataclass(frozen=True)
class Vote:
    """A committed (user, tapa, stars) record."""
    id: str
    user_id: str
    tapa_id: str
    stars: int
    validated_location: bool = False
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Profile:
    """Profile reference data joined into raffle listings."""
    user_id: str
    email: Optional[str] = None


@dataclass
class PendingVote:
    """
    A vote intent staged while the user is not authenticated.

    Tapa and venue names are denormalized so the UI can describe the
    staged vote without another lookup.
    """
    tapa_id: str
    tapa_name: str
    venue_id: str
    venue_name: str
    stars: int
    location_validated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    def to_json(self) -> str:
        """Convert to JSON string for durable storage."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PendingVote':
        """Create PendingVote from dictionary."""
        return cls(
            tapa_id=data['tapa_id'],
            tapa_name=data['tapa_name'],
            venue_id=data['venue_id'],
            venue_name=data['venue_name'],
            stars=int(data['stars']),
            location_validated=bool(data.get('location_validated', False)),
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'PendingVote':
        """Create PendingVote from JSON string."""
        return cls.from_dict(json.loads(json_str))


@dataclass(frozen=True)
class DistanceValidationResult:
    """Outcome of a proximity check; distance is rounded to whole meters."""
    is_valid: bool
    distance: int


def validate_stars(stars: int) -> bool:
    """
    Validate a star rating.

    Args:
        stars: Rating to validate

    Returns:
        bool: True if the rating is an integer between 1 and 5
    """
    return isinstance(stars, int) and not isinstance(stars, bool) and MIN_STARS <= stars <= MAX_STARS


def validate_slug(slug: str) -> bool:
    """
    Validate an event slug.

    Args:
        slug: Slug to validate

    Returns:
        bool: True if valid format
    """
    return bool(slug) and SLUG_PATTERN.match(slug) is not None


def get_today() -> date:
    """Current UTC calendar date."""
    return datetime.now(timezone.utc).date()


def get_current_timestamp() -> datetime:
    """
    Get current UTC timestamp.

    Returns:
        datetime: Timezone-aware UTC timestamp
    """
    return datetime.now(timezone.utc)


def find_active_event(events: List[Event], today: Optional[date] = None) -> Optional[Event]:
    """
    Pick the event to show by default.

    Events are considered newest first. The first one whose active range
    contains today wins; if none is active the most recent event is
    returned instead.

    Args:
        events: Candidate events
        today: Reference date (defaults to the current UTC date)

    Returns:
        Event or None if there are no events at all
    """
    if not events:
        return None

    ordered = sorted(
        events,
        key=lambda e: e.created_at.timestamp() if e.created_at else float("-inf"),
        reverse=True
    )
    for event in ordered:
        if event.is_active(today):
            return event
    return ordered[0]


def get_venue_qr_url(base_url: str, venue_id: str) -> str:
    """Public voting URL encoded into a venue's QR code."""
    return f"{base_url.rstrip('/')}/votar/{venue_id}"


# Durable client-side storage keys
STORAGE_KEYS = {
    'pending_vote': 'tapea_pending_vote:{}',   # JSON PendingVote for a session
    'dev_mode': 'tapea_dev_mode:{}',           # "true"/"false" override flag
}


def get_storage_key(key_type: str, *args) -> str:
    """
    Get formatted storage key.

    Args:
        key_type: Type of key from STORAGE_KEYS
        *args: Arguments to format into key

    Returns:
        str: Formatted key
    """
    key_template = STORAGE_KEYS.get(key_type)
    if key_template and '{}' in key_template:
        return key_template.format(*args)
    return key_template
