"""
FastAPI application for the tapas route vote store.

Exposes vote creation with store-level duplicate detection, the read-side
ranking, raffle and passport views, and the reference data needed by the
QR voting entry point.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from ..aggregation import (
    build_passport,
    compute_ranking,
    list_raffle_participants,
    qualified_vote_counts,
)
from ..shared.models import (
    DEFAULT_RANKING_LIMIT,
    Tapa,
    Venue,
    find_active_event,
    get_current_timestamp,
    get_today,
)
from .config import settings
from .database import database
from .models import (
    ErrorResponse,
    EventResponse,
    HealthResponse,
    PassportEntryResponse,
    PassportResponse,
    RaffleParticipantResponse,
    RankingEntryResponse,
    TapaResponse,
    VenueResponse,
    VoteRequest,
    VoteResponse,
)
from .store import DuplicateVoteError, NotFoundError, VoteStore, VoteStoreError

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Prometheus metrics
vote_counter = Counter(
    "votes_submitted_total",
    "Total number of votes recorded",
    ["stars"]
)
vote_errors = Counter(
    "vote_errors_total",
    "Total number of vote submission errors",
    ["error_type"]
)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)

API_PREFIX = f"/api/{settings.API_VERSION}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info(f"Starting {settings.SERVICE_NAME} service...")

    try:
        await database.initialize()
        logger.info(f"{settings.SERVICE_NAME} started successfully")
    except Exception as e:
        logger.error(f"Failed to start {settings.SERVICE_NAME}: {e}")
        raise

    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME} service...")
    await database.close()
    logger.info(f"{settings.SERVICE_NAME} shut down successfully")


# Create FastAPI app
app = FastAPI(
    title="Tapas Route Voting API",
    description="Vote store, ranking and raffle views for tapas route events",
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


def get_store() -> VoteStore:
    """Store dependency; overridden in tests."""
    return database


def error_response(status_code: int, error: str, message: str, **details) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error"
    )


def venue_response(venue: Venue, tapas: list[Tapa]) -> VenueResponse:
    return VenueResponse(
        id=venue.id,
        event_id=venue.event_id,
        name=venue.name,
        description=venue.description,
        address=venue.address,
        lat=venue.lat,
        lng=venue.lng,
        image_url=venue.image_url,
        tapas=[
            TapaResponse(
                id=t.id,
                venue_id=t.venue_id,
                name=t.name,
                description=t.description,
                price=t.price,
                image_url=t.image_url,
            )
            for t in tapas if t.venue_id == venue.id
        ],
    )


def event_response(event) -> EventResponse:
    return EventResponse(
        id=event.id,
        name=event.name,
        slug=event.slug,
        start_date=event.start_date,
        end_date=event.end_date,
        theme_colors=event.theme_colors,
        is_active=event.is_active(get_today()),
    )


@app.post(
    f"{API_PREFIX}/votes",
    response_model=VoteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Tapa not found"},
        409: {"model": ErrorResponse, "description": "User already voted this tapa"},
        429: {"description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Internal server error"}
    }
)
@limiter.limit(settings.RATE_LIMIT)
async def submit_vote(request: Request, vote: VoteRequest, store: VoteStore = Depends(get_store)):
    """
    Record a vote for a tapa.

    - **user_id**: authenticated user
    - **tapa_id**: tapa being rated
    - **stars**: 1 to 5
    - **validated_location**: whether the proximity gate passed

    A second vote by the same user for the same tapa is rejected with 409
    and error kind DUPLICATE.
    """
    try:
        created = await store.create_vote(
            vote.user_id, vote.tapa_id, vote.stars, vote.validated_location
        )
    except DuplicateVoteError as e:
        vote_errors.labels(error_type="duplicate").inc()
        return error_response(
            status.HTTP_409_CONFLICT, e.kind.value, str(e), tapa_id=vote.tapa_id
        )
    except NotFoundError as e:
        vote_errors.labels(error_type="not_found").inc()
        return error_response(status.HTTP_404_NOT_FOUND, "NOT_FOUND", str(e))
    except VoteStoreError as e:
        vote_errors.labels(error_type="store_error").inc()
        logger.error(f"Error submitting vote: {e}")
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, e.kind.value, "Failed to record vote",
            retryable=e.retryable
        )

    vote_counter.labels(stars=str(vote.stars)).inc()
    logger.info(
        f"Vote recorded: user_id={vote.user_id}, tapa_id={vote.tapa_id}, "
        f"stars={vote.stars}, validated_location={vote.validated_location}"
    )

    return VoteResponse(
        id=created.id,
        user_id=created.user_id,
        tapa_id=created.tapa_id,
        stars=created.stars,
        validated_location=created.validated_location,
        created_at=created.created_at,
    )


@app.get(f"{API_PREFIX}/users/{{user_id}}/votes", response_model=list[VoteResponse])
async def get_user_votes(user_id: str, store: VoteStore = Depends(get_store)):
    """List a user's votes, newest first."""
    try:
        votes = await store.list_votes_by_user(user_id)
    except VoteStoreError as e:
        logger.error(f"Error listing votes for user {user_id}: {e}")
        raise internal_error()

    return [
        VoteResponse(
            id=v.id,
            user_id=v.user_id,
            tapa_id=v.tapa_id,
            stars=v.stars,
            validated_location=v.validated_location,
            created_at=v.created_at,
        )
        for v in votes
    ]


@app.get(f"{API_PREFIX}/users/{{user_id}}/passport", response_model=PassportResponse)
async def get_passport(
    user_id: str,
    event_id: Optional[str] = None,
    store: VoteStore = Depends(get_store)
):
    """
    A user's voted tapas with raffle progress.

    With **event_id**, only tapas of that event's venues are counted.
    """
    try:
        votes = await store.list_votes_by_user(user_id)
        venues = await store.list_venues(event_id)
        tapas = await store.list_tapas([v.id for v in venues] if event_id else None)
    except VoteStoreError as e:
        logger.error(f"Error building passport for user {user_id}: {e}")
        raise internal_error()

    passport = build_passport(user_id, votes, tapas, venues, event_id=event_id)

    return PassportResponse(
        user_id=user_id,
        event_id=event_id,
        entries=[PassportEntryResponse(**asdict(entry)) for entry in passport.entries],
        vote_count=passport.vote_count,
        votes_remaining=passport.votes_remaining,
        raffle_eligible=passport.raffle_eligible,
    )


@app.get(f"{API_PREFIX}/ranking", response_model=list[RankingEntryResponse])
async def get_ranking(
    event_id: Optional[str] = None,
    limit: int = Query(DEFAULT_RANKING_LIMIT, ge=0, le=100),
    store: VoteStore = Depends(get_store)
):
    """
    Top tapas by average stars, ties broken by vote count.

    Without **event_id** the ranking is global.
    """
    try:
        venues = await store.list_venues(event_id)
        if event_id is not None and not venues:
            return []

        tapas = await store.list_tapas([v.id for v in venues] if event_id else None)
        votes = await store.list_votes_by_tapa_ids([t.id for t in tapas])
    except VoteStoreError as e:
        logger.error(f"Error computing ranking: {e}")
        raise internal_error()

    ranking = compute_ranking(votes, tapas, venues, event_id=event_id, limit=limit)
    return [RankingEntryResponse(**row.to_dict()) for row in ranking]


@app.get(f"{API_PREFIX}/raffle/participants", response_model=list[RaffleParticipantResponse])
async def get_raffle_participants(store: VoteStore = Depends(get_store)):
    """Users with enough votes to enter the raffle, across all events."""
    try:
        votes = await store.list_votes()
        qualified = qualified_vote_counts(votes)
        profiles = await store.list_profiles(list(qualified))
    except VoteStoreError as e:
        logger.error(f"Error listing raffle participants: {e}")
        raise internal_error()

    return [
        RaffleParticipantResponse(**participant.to_dict())
        for participant in list_raffle_participants(votes, profiles)
    ]


@app.get(f"{API_PREFIX}/events", response_model=list[EventResponse])
async def get_events(store: VoteStore = Depends(get_store)):
    """All events, newest first."""
    try:
        events = await store.list_events()
    except VoteStoreError as e:
        logger.error(f"Error listing events: {e}")
        raise internal_error()
    return [event_response(e) for e in events]


@app.get(
    f"{API_PREFIX}/events/active",
    response_model=EventResponse,
    responses={404: {"description": "No events"}}
)
async def get_active_event(store: VoteStore = Depends(get_store)):
    """The event running today, or the most recent one."""
    try:
        events = await store.list_events()
    except VoteStoreError as e:
        logger.error(f"Error resolving active event: {e}")
        raise internal_error()

    event = find_active_event(events, get_today())
    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No events")
    return event_response(event)


@app.get(
    f"{API_PREFIX}/events/{{slug}}",
    response_model=EventResponse,
    responses={404: {"description": "Event not found"}}
)
async def get_event(slug: str, store: VoteStore = Depends(get_store)):
    """Event lookup by URL slug."""
    try:
        event = await store.get_event_by_slug(slug)
    except VoteStoreError as e:
        logger.error(f"Error getting event {slug}: {e}")
        raise internal_error()

    if event is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Event {slug} not found")
    return event_response(event)


@app.get(f"{API_PREFIX}/venues", response_model=list[VenueResponse])
async def get_venues(event_id: Optional[str] = None, store: VoteStore = Depends(get_store)):
    """Venues ordered by name, each with its tapas."""
    try:
        venues = await store.list_venues(event_id)
        tapas = await store.list_tapas([v.id for v in venues])
    except VoteStoreError as e:
        logger.error(f"Error listing venues: {e}")
        raise internal_error()
    return [venue_response(v, tapas) for v in venues]


@app.get(
    f"{API_PREFIX}/venues/{{venue_id}}",
    response_model=VenueResponse,
    responses={404: {"description": "Venue not found"}}
)
async def get_venue(venue_id: str, store: VoteStore = Depends(get_store)):
    """
    Venue lookup for the QR voting entry point.

    Tapas are returned in venue order; the first one is the star tapa.
    """
    try:
        venue = await store.get_venue(venue_id)
        if venue is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Venue {venue_id} not found"
            )
        tapas = await store.list_tapas([venue_id])
    except VoteStoreError as e:
        logger.error(f"Error getting venue {venue_id}: {e}")
        raise internal_error()
    return venue_response(venue, tapas)


@app.get(
    f"{API_PREFIX}/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse, "description": "Service unhealthy"}}
)
async def health_check(store: VoteStore = Depends(get_store)):
    """Check health of the service and its store."""
    services = {}

    try:
        healthy = await store.check_health()
        services["postgresql"] = "connected" if healthy else "disconnected"
    except Exception as e:
        logger.error(f"PostgreSQL health check error: {e}")
        services["postgresql"] = "error"

    all_healthy = all(s == "connected" for s in services.values())
    response = HealthResponse(
        status="healthy" if all_healthy else "unhealthy",
        services=services,
        timestamp=get_current_timestamp()
    )

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json")
    )


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.API_VERSION,
        "status": "running",
        "endpoints": {
            "submit_vote": f"{API_PREFIX}/votes",
            "user_votes": f"{API_PREFIX}/users/{{user_id}}/votes",
            "passport": f"{API_PREFIX}/users/{{user_id}}/passport",
            "ranking": f"{API_PREFIX}/ranking",
            "raffle": f"{API_PREFIX}/raffle/participants",
            "events": f"{API_PREFIX}/events",
            "venue": f"{API_PREFIX}/venues/{{venue_id}}",
            "health": f"{API_PREFIX}/health",
            "metrics": "/metrics"
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tapas_route.voting_api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
