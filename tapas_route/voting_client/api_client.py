"""HTTP client for the voting API."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

import httpx

from ..shared.models import Tapa, Venue, Vote
from ..voting_api.store import (
    DuplicateVoteError,
    NotFoundError,
    VoteStoreError,
    VoteStoreTimeoutError,
)
from .config import Config

logger = logging.getLogger(__name__)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def _vote_from_json(data: dict) -> Vote:
    return Vote(
        id=data['id'],
        user_id=data['user_id'],
        tapa_id=data['tapa_id'],
        stars=data['stars'],
        validated_location=data.get('validated_location', False),
        created_at=_parse_datetime(data.get('created_at')),
    )


class VoteApiClient:
    """
    Async client for the vote store API.

    Every call is bounded by an explicit timeout. A timeout surfaces as
    VoteStoreTimeoutError, which is retryable: the caller should re-query
    before assuming a write failed.
    """

    def __init__(
        self,
        base_url: str = Config.API_URL,
        timeout: float = Config.REQUEST_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Vote API timeout on {method} {path}: {e}")
            raise VoteStoreTimeoutError(f"Timed out calling {path}")
        except httpx.HTTPError as e:
            logger.error(f"Vote API transport error on {method} {path}: {e}")
            raise VoteStoreError(f"Could not reach vote API: {e}")

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        if response.status_code == 404:
            raise NotFoundError(response.text)
        raise VoteStoreError(f"Vote API returned {response.status_code}")

    @staticmethod
    def _json(response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Vote API returned a non-JSON body: {e}")
            raise VoteStoreError("Vote API returned an unreadable response")

    async def create_vote(
        self,
        user_id: str,
        tapa_id: str,
        stars: int,
        validated_location: bool = False
    ) -> Vote:
        """
        Create a vote.

        Raises:
            DuplicateVoteError: the user already voted this tapa
            VoteStoreTimeoutError: no answer in time; the vote may have landed
            VoteStoreError: any other failure
        """
        response = await self._request(
            "POST",
            "/votes",
            json={
                "user_id": user_id,
                "tapa_id": tapa_id,
                "stars": stars,
                "validated_location": validated_location,
            }
        )

        if response.status_code == 409:
            raise DuplicateVoteError(user_id, tapa_id)
        self._raise_for_status(response)

        return _vote_from_json(self._json(response))

    async def list_votes_by_user(self, user_id: str) -> List[Vote]:
        response = await self._request("GET", f"/users/{user_id}/votes")
        self._raise_for_status(response)
        return [_vote_from_json(v) for v in self._json(response)]

    async def get_venue(self, venue_id: str) -> Tuple[Venue, List[Tapa]]:
        """
        Fetch a venue and its tapas for the QR voting page.

        Raises:
            NotFoundError: unknown venue (invalid or retired QR code)
        """
        response = await self._request("GET", f"/venues/{venue_id}")
        self._raise_for_status(response)
        data = self._json(response)

        venue = Venue(
            id=data['id'],
            event_id=data['event_id'],
            name=data['name'],
            lat=data['lat'],
            lng=data['lng'],
            address=data.get('address'),
            description=data.get('description'),
            image_url=data.get('image_url'),
        )
        tapas = [
            Tapa(
                id=t['id'],
                venue_id=t['venue_id'],
                name=t['name'],
                price=Decimal(str(t['price'])),
                description=t.get('description'),
                image_url=t.get('image_url'),
            )
            for t in data.get('tapas', [])
        ]
        return venue, tapas

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()
