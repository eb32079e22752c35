"""Pydantic models for request/response validation."""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class VoteRequest(BaseModel):
    """Vote submission request model."""

    user_id: str = Field(..., description="Authenticated user identifier")
    tapa_id: str = Field(..., description="Tapa being rated")
    stars: int = Field(..., ge=1, le=5, description="Star rating, 1 to 5")
    validated_location: bool = Field(default=False, description="Whether the proximity check passed")

    @field_validator("user_id", "tapa_id")
    @classmethod
    def validate_identifier(cls, v):
        """Identifiers cannot be blank."""
        if not v or not v.strip():
            raise ValueError("Identifier cannot be empty")
        return v.strip()

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "google-oauth2|1234",
                "tapa_id": "b6f8c0de-1c2a-4c4e-9f7e-0a1b2c3d4e5f",
                "stars": 4,
                "validated_location": True
            }
        }
    }


class VoteResponse(BaseModel):
    """A committed vote."""

    id: str
    user_id: str
    tapa_id: str
    stars: int
    validated_location: bool
    created_at: Optional[datetime] = None


class TapaResponse(BaseModel):
    """Tapa reference data."""

    id: str
    venue_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None


class VenueResponse(BaseModel):
    """Venue with its tapas, in venue order."""

    id: str
    event_id: str
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    lat: float
    lng: float
    image_url: Optional[str] = None
    tapas: list[TapaResponse] = Field(default_factory=list)


class EventResponse(BaseModel):
    """Event (route) reference data."""

    id: str
    name: str
    slug: str
    start_date: date
    end_date: date
    theme_colors: dict = Field(default_factory=dict)
    is_active: bool


class RankingEntryResponse(BaseModel):
    """One ranked tapa."""

    tapa_id: str
    name: str
    image_url: Optional[str] = None
    venue_id: str
    venue_name: str
    avg_stars: float = Field(..., description="Average stars, one decimal")
    vote_count: int


class RaffleParticipantResponse(BaseModel):
    """A raffle participant."""

    user_id: str
    email: Optional[str] = None
    vote_count: int


class PassportEntryResponse(BaseModel):
    """A voted tapa in a user's passport."""

    vote_id: str
    stars: int
    created_at: Optional[datetime] = None
    tapa_id: str
    tapa_name: str
    tapa_image_url: Optional[str] = None
    venue_id: str
    venue_name: str


class PassportResponse(BaseModel):
    """A user's voted tapas and raffle progress."""

    user_id: str
    event_id: Optional[str] = None
    entries: list[PassportEntryResponse]
    vote_count: int
    votes_remaining: int
    raffle_eligible: bool


class HealthResponse(BaseModel):
    """Health check response model."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Overall health status")
    services: dict = Field(..., description="Status of individual services")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Health check timestamp"
    )


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error kind")
    message: str = Field(..., description="Error message")
    details: dict = Field(default_factory=dict, description="Additional error details")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "DUPLICATE",
                "message": "Ya has votado esta tapa",
                "details": {"tapa_id": "b6f8c0de-1c2a-4c4e-9f7e-0a1b2c3d4e5f"}
            }
        }
    }
