"""Pytest fixtures for the tapas route tests.

Provides an in-memory vote store that honours the same uniqueness rule as
the PostgreSQL schema, an in-memory async Redis double for session storage,
seeded reference data, and an HTTP client bound to the FastAPI app.
"""

import os

# Keep the vote endpoint's rate limit out of the way of the API tests
os.environ.setdefault("RATE_LIMIT", "10000/minute")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional

import httpx
import pytest
import redis.asyncio as redis

from tapas_route.shared.models import Event, Profile, Tapa, Venue, Vote
from tapas_route.voting_api.main import app, get_store
from tapas_route.voting_api.store import (
    DuplicateVoteError,
    NotFoundError,
    VoteStore,
)
from tapas_route.voting_client.geolocation import GeolocationProvider, StaticPositionSource
from tapas_route.voting_client.identity import IdentityProvider, SignInResult
from tapas_route.voting_client.protocol import SessionContext, VoteSubmissionProtocol
from tapas_route.voting_client.storage import DevModeFlag, PendingVoteCache

# Puerta del Sol area
VENUE_LAT = 40.4168
VENUE_LNG = -3.7038
NEARBY = (40.4169, -3.7039)      # ~14 m away
FAR_AWAY = (40.4268, -3.7038)    # ~1112 m north


class InMemoryVoteStore(VoteStore):
    """VoteStore double keeping records in lists.

    create_vote enforces one vote per (user_id, tapa_id). Failures can be
    injected per operation to exercise error paths.
    """

    def __init__(self):
        self.events: List[Event] = []
        self.venues: List[Venue] = []
        self.tapas: List[Tapa] = []
        self.votes: List[Vote] = []
        self.profiles: List[Profile] = []
        self.healthy = True
        self.create_calls = 0
        self.create_failure: Optional[Exception] = None
        self.land_before_failure = False
        self.list_failure: Optional[Exception] = None
        self._clock = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def add_vote(self, user_id: str, tapa_id: str, stars: int) -> Vote:
        vote = Vote(
            id=str(uuid.uuid4()),
            user_id=user_id,
            tapa_id=tapa_id,
            stars=stars,
            created_at=self._tick(),
        )
        self.votes.append(vote)
        return vote

    async def create_vote(self, user_id, tapa_id, stars, validated_location=False):
        self.create_calls += 1

        if self.create_failure is not None:
            error = self.create_failure
            if self.land_before_failure:
                self.add_vote(user_id, tapa_id, stars)
            raise error

        if not any(t.id == tapa_id for t in self.tapas):
            raise NotFoundError(f"Tapa {tapa_id} not found")
        if any(v.user_id == user_id and v.tapa_id == tapa_id for v in self.votes):
            raise DuplicateVoteError(user_id, tapa_id)

        vote = Vote(
            id=str(uuid.uuid4()),
            user_id=user_id,
            tapa_id=tapa_id,
            stars=stars,
            validated_location=validated_location,
            created_at=self._tick(),
        )
        self.votes.append(vote)
        return vote

    async def list_votes(self):
        return list(self.votes)

    async def list_votes_by_user(self, user_id):
        if self.list_failure is not None:
            raise self.list_failure
        votes = [v for v in self.votes if v.user_id == user_id]
        return sorted(votes, key=lambda v: v.created_at, reverse=True)

    async def list_votes_by_tapa_ids(self, tapa_ids):
        wanted = set(tapa_ids)
        return [v for v in self.votes if v.tapa_id in wanted]

    async def get_tapa(self, tapa_id):
        return next((t for t in self.tapas if t.id == tapa_id), None)

    async def get_venue(self, venue_id):
        return next((v for v in self.venues if v.id == venue_id), None)

    async def list_venues(self, event_id=None):
        venues = [v for v in self.venues if event_id is None or v.event_id == event_id]
        return sorted(venues, key=lambda v: v.name)

    async def list_tapas(self, venue_ids=None):
        if venue_ids is None:
            return list(self.tapas)
        wanted = set(venue_ids)
        return [t for t in self.tapas if t.venue_id in wanted]

    async def list_events(self):
        return sorted(self.events, key=lambda e: e.created_at, reverse=True)

    async def get_event_by_slug(self, slug):
        return next((e for e in self.events if e.slug == slug), None)

    async def list_profiles(self, user_ids):
        wanted = set(user_ids)
        return [p for p in self.profiles if p.user_id in wanted]

    async def check_health(self):
        return self.healthy


class FakeRedis:
    """Async Redis double supporting the string commands session storage uses."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("Redis unavailable")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value):
        self._check()
        self.data[key] = value
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def aclose(self):
        pass


class FakeIdentityProvider(IdentityProvider):
    """Identity provider whose sign-in either redirects, completes or fails."""

    def __init__(self, user_id: Optional[str] = None, sign_in_as: Optional[str] = None,
                 redirect: bool = True, error: Optional[str] = None,
                 raises: Optional[Exception] = None):
        self.user_id = user_id
        self.sign_in_as = sign_in_as
        self.redirect = redirect
        self.error = error
        self.raises = raises
        self.sign_in_calls = []

    async def current_identity(self):
        return self.user_id

    async def sign_in(self, provider="google", redirect_target=None):
        self.sign_in_calls.append((provider, redirect_target))
        if self.raises is not None:
            raise self.raises
        if self.error:
            return SignInResult(redirected=False, error=self.error)
        if not self.redirect:
            self.user_id = self.sign_in_as
        return SignInResult(redirected=self.redirect)


@pytest.fixture
def event() -> Event:
    return Event(
        id="event-2026",
        name="Ruta de la Tapa 2026",
        slug="ruta-tapa-2026",
        start_date=date(2026, 2, 1),
        end_date=date(2026, 2, 15),
        theme_colors={"primary": "#c2410c"},
        created_at=datetime(2026, 1, 10, tzinfo=timezone.utc),
    )


@pytest.fixture
def venue() -> Venue:
    return Venue(
        id="venue-plaza",
        event_id="event-2026",
        name="Bar La Plaza",
        lat=VENUE_LAT,
        lng=VENUE_LNG,
        address="Plaza Mayor 1",
    )


@pytest.fixture
def tapa() -> Tapa:
    return Tapa(id="tapa-croqueta", venue_id="venue-plaza", name="Croqueta de jamón", price=Decimal("3.50"))


@pytest.fixture
def store(event: Event, venue: Venue, tapa: Tapa) -> InMemoryVoteStore:
    """Store seeded with one event, two venues and three tapas."""
    memory = InMemoryVoteStore()
    memory.events.append(event)
    memory.venues.extend([
        venue,
        Venue(id="venue-rincon", event_id="event-2026", name="Taberna El Rincón",
              lat=40.4153, lng=-3.7074),
    ])
    memory.tapas.extend([
        tapa,
        Tapa(id="tapa-tortilla", venue_id="venue-plaza", name="Tortilla de patatas", price=Decimal("3.00")),
        Tapa(id="tapa-bravas", venue_id="venue-rincon", name="Patatas bravas", price=Decimal("4.00")),
    ])
    return memory


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def pending_votes(fake_redis: FakeRedis) -> PendingVoteCache:
    return PendingVoteCache(fake_redis, session_id="test-session")


@pytest.fixture
def dev_mode(fake_redis: FakeRedis) -> DevModeFlag:
    return DevModeFlag(fake_redis, session_id="test-session")


@pytest.fixture
def make_protocol(store, pending_votes, dev_mode):
    """Factory building a protocol around the shared store and storage.

    Args:
        identity: IdentityProvider to use (defaults to signed out)
        position: (lat, lng) of the device, or None for no positioning
    """
    def _make(identity: Optional[IdentityProvider] = None, position=NEARBY):
        source = StaticPositionSource(*position) if position is not None else None
        context = SessionContext(
            identity=identity or FakeIdentityProvider(),
            pending_votes=pending_votes,
            dev_mode=dev_mode,
            geolocation=GeolocationProvider(source),
            store=store,
        )
        return VoteSubmissionProtocol(context, max_distance_meters=100)

    return _make


@pytest.fixture
def located():
    """Helper resolving the position before a submission."""
    async def _located(protocol: VoteSubmissionProtocol) -> VoteSubmissionProtocol:
        await protocol.context.geolocation.request()
        return protocol

    return _located


@pytest.fixture
async def api_client(store: InMemoryVoteStore) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client driving the FastAPI app in-process against the memory store."""
    app.dependency_overrides[get_store] = lambda: store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "api: test drives the HTTP API in-process"
    )
    config.addinivalue_line(
        "markers",
        "protocol: test exercises the client vote submission protocol"
    )
