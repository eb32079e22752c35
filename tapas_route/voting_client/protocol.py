"""
Vote submission protocol.

Drives one vote from a chosen rating to a recorded Vote:

    rating -> duplicate check -> location gate -> auth check -> commit

When no identity is present the vote is staged in the pending vote slot
and a sign-in is started; reconcile() later commits the staged vote once
an identity is available. Every path ends in a SubmissionOutcome; store,
storage and sign-in failures are reported, never raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import redis.asyncio as redis

from ..aggregation.raffle import is_eligible
from ..shared.geo import format_distance, validate_distance
from ..shared.models import (
    LocationErrorReason,
    PendingVote,
    Tapa,
    Venue,
    Vote,
    get_venue_qr_url,
    validate_stars,
)
from ..voting_api.store import DuplicateVoteError, VoteStoreError
from .config import Config
from .geolocation import LOCATION_ERROR_MESSAGES, GeolocationProvider, GeolocationStatus
from .identity import IdentityProvider
from .storage import DevModeFlag, PendingVoteCache

logger = logging.getLogger(__name__)

DUPLICATE_VOTE_MESSAGE = "Ya has votado esta tapa"


class EligibilityStatus(str, Enum):
    ELIGIBLE = "eligible"
    DEV_OVERRIDE = "dev_override"
    PENDING = "pending"
    ERROR = "error"
    TOO_FAR = "too_far"


@dataclass(frozen=True)
class EligibilityResult:
    """
    Location gate result for one venue.

    location_validated is True only when a fresh fix put the user within
    range; the developer override allows voting without validating.
    """
    status: EligibilityStatus
    distance: Optional[int] = None
    error: Optional[LocationErrorReason] = None
    message: Optional[str] = None

    @property
    def can_vote(self) -> bool:
        return self.status in (EligibilityStatus.ELIGIBLE, EligibilityStatus.DEV_OVERRIDE)

    @property
    def location_validated(self) -> bool:
        return self.status == EligibilityStatus.ELIGIBLE


class SubmissionStatus(str, Enum):
    INVALID_RATING = "invalid_rating"
    ALREADY_VOTED = "already_voted"
    LOCATION_PENDING = "location_pending"
    LOCATION_ERROR = "location_error"
    TOO_FAR = "too_far"
    STAGED_FOR_SIGN_IN = "staged_for_sign_in"
    SIGN_IN_FAILED = "sign_in_failed"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionOutcome:
    """What the user should see after a submission attempt."""
    status: SubmissionStatus
    title: str
    message: Optional[str] = None
    vote: Optional[Vote] = None
    raffle_unlocked: bool = False
    retryable: bool = False


@dataclass
class SessionContext:
    """Collaborators of one client session."""
    identity: IdentityProvider
    pending_votes: PendingVoteCache
    dev_mode: DevModeFlag
    geolocation: GeolocationProvider
    store: object  # VoteStore or VoteApiClient: create_vote + list_votes_by_user


class VoteSubmissionProtocol:
    """Location-gated, lazily authenticated vote submission."""

    def __init__(
        self,
        context: SessionContext,
        max_distance_meters: float = Config.MAX_VOTE_DISTANCE_METERS
    ):
        self.context = context
        self.max_distance_meters = max_distance_meters
        self._reconcile_lock = asyncio.Lock()

    async def check_location(self, venue: Venue) -> EligibilityResult:
        """
        Evaluate the location gate for a venue.

        Starts a position request when none has been made and reports
        PENDING instead of waiting for it. A failed request is reported
        with its reason; calling retry_location() starts a new one.
        """
        if await self._dev_mode_enabled():
            return EligibilityResult(status=EligibilityStatus.DEV_OVERRIDE)

        geolocation = self.context.geolocation

        if geolocation.status == GeolocationStatus.IDLE:
            geolocation.start()

        if geolocation.status == GeolocationStatus.REQUESTING:
            return EligibilityResult(
                status=EligibilityStatus.PENDING,
                message="Necesitamos verificar que estás en el restaurante para votar"
            )

        if geolocation.status == GeolocationStatus.FAILED:
            return EligibilityResult(
                status=EligibilityStatus.ERROR,
                error=geolocation.error,
                message=LOCATION_ERROR_MESSAGES[geolocation.error]
            )

        fix = geolocation.fix
        validation = validate_distance(
            fix.latitude, fix.longitude,
            venue.lat, venue.lng,
            self.max_distance_meters
        )

        if not validation.is_valid:
            return EligibilityResult(
                status=EligibilityStatus.TOO_FAR,
                distance=validation.distance,
                message=(
                    "Debes estar en el restaurante para votar. "
                    f"Distancia actual: {format_distance(validation.distance)}"
                )
            )

        return EligibilityResult(status=EligibilityStatus.ELIGIBLE, distance=validation.distance)

    async def _dev_mode_enabled(self) -> bool:
        try:
            return await self.context.dev_mode.is_enabled()
        except redis.RedisError as e:
            logger.warning(f"Could not read dev mode flag, assuming off: {e}")
            return False

    def retry_location(self) -> None:
        """Manual retry after a location error."""
        self.context.geolocation.start()

    async def submit(self, venue: Venue, tapa: Tapa, stars: int) -> SubmissionOutcome:
        """
        Submit a rating for a tapa at a venue.

        Args:
            venue: Venue the tapa is served at (coordinates for the gate)
            tapa: Tapa being rated
            stars: Rating, 1 to 5

        Returns:
            SubmissionOutcome describing the resulting state
        """
        if not validate_stars(stars):
            return SubmissionOutcome(
                status=SubmissionStatus.INVALID_RATING,
                title="Selecciona una puntuación",
                message="Debes dar entre 1 y 5 estrellas"
            )

        user_id = await self.context.identity.current_identity()

        if user_id is not None:
            existing = await self._existing_vote_or_none(user_id, tapa.id)
            if existing is not None:
                logger.warning(f"Duplicate vote blocked: user_id={user_id}, tapa_id={tapa.id}")
                return self._already_voted(existing)

        eligibility = await self.check_location(venue)
        if not eligibility.can_vote:
            return self._ineligible(eligibility)

        if user_id is None:
            return await self._stage_and_sign_in(venue, tapa, stars, eligibility.location_validated)

        return await self._commit(user_id, tapa.id, stars, eligibility.location_validated)

    async def reconcile(self) -> Optional[SubmissionOutcome]:
        """
        Commit a staged vote once an identity is available.

        Returns None when there is nothing to do (no identity or no staged
        vote). Otherwise makes a single commit attempt and clears the slot
        whatever the result.
        """
        async with self._reconcile_lock:
            user_id = await self.context.identity.current_identity()
            if user_id is None:
                return None

            try:
                pending = await self.context.pending_votes.get()
            except redis.RedisError as e:
                logger.error(f"Could not read staged vote: {e}")
                return None

            if pending is None:
                return None

            logger.info(f"Reconciling staged vote: user_id={user_id}, tapa_id={pending.tapa_id}")
            try:
                return await self._reconcile_pending(user_id, pending)
            finally:
                try:
                    await self.context.pending_votes.clear()
                except redis.RedisError as e:
                    logger.error(f"Could not clear staged vote: {e}")

    async def _reconcile_pending(self, user_id: str, pending: PendingVote) -> SubmissionOutcome:
        try:
            votes = await self.context.store.list_votes_by_user(user_id)
        except VoteStoreError as e:
            logger.error(f"Dropping staged vote for tapa {pending.tapa_id}: {e}")
            return self._failed(e)

        existing = _find_vote(votes, pending.tapa_id)
        if existing is not None:
            logger.info(f"Staged vote already recorded: tapa_id={pending.tapa_id}")
            return self._already_voted(existing)

        outcome = await self._commit(
            user_id, pending.tapa_id, pending.stars, pending.location_validated
        )
        if outcome.status == SubmissionStatus.FAILED:
            logger.error(f"Dropping staged vote for tapa {pending.tapa_id} after failed commit")
        return outcome

    async def _stage_and_sign_in(
        self,
        venue: Venue,
        tapa: Tapa,
        stars: int,
        location_validated: bool
    ) -> SubmissionOutcome:
        pending = PendingVote(
            tapa_id=tapa.id,
            tapa_name=tapa.name,
            venue_id=venue.id,
            venue_name=venue.name,
            stars=stars,
            location_validated=location_validated,
        )

        try:
            await self.context.pending_votes.set(pending)
        except redis.RedisError as e:
            return SubmissionOutcome(
                status=SubmissionStatus.FAILED,
                title="Error al votar",
                message=f"No se pudo guardar el voto: {e}",
                retryable=True
            )

        try:
            result = await self.context.identity.sign_in(
                "google",
                redirect_target=get_venue_qr_url(Config.APP_BASE_URL, venue.id)
            )
        except Exception as e:
            logger.error(f"Sign-in raised, vote stays staged: {e}")
            return SubmissionOutcome(
                status=SubmissionStatus.SIGN_IN_FAILED,
                title="Error de autenticación",
                message=f"No se pudo iniciar sesión: {e}"
            )

        if result.error:
            logger.error(f"Sign-in failed, vote stays staged: {result.error}")
            return SubmissionOutcome(
                status=SubmissionStatus.SIGN_IN_FAILED,
                title="Error de autenticación",
                message=result.error
            )

        if not result.redirected:
            # Signed in without leaving; commit the staged vote now
            outcome = await self.reconcile()
            if outcome is not None:
                return outcome

        return SubmissionOutcome(
            status=SubmissionStatus.STAGED_FOR_SIGN_IN,
            title="Inicia sesión para votar",
            message="Tu voto se registrará al iniciar sesión"
        )

    async def _commit(
        self,
        user_id: str,
        tapa_id: str,
        stars: int,
        location_validated: bool
    ) -> SubmissionOutcome:
        """
        Create the vote, confirming by re-query when the outcome is unknown.

        A timeout does not mean the write failed; the user's votes are read
        back before reporting FAILED.
        """
        try:
            vote = await self.context.store.create_vote(
                user_id, tapa_id, stars, validated_location=location_validated
            )
        except DuplicateVoteError:
            logger.warning(f"Duplicate vote rejected by store: user_id={user_id}, tapa_id={tapa_id}")
            return SubmissionOutcome(
                status=SubmissionStatus.ALREADY_VOTED,
                title=DUPLICATE_VOTE_MESSAGE
            )
        except VoteStoreError as e:
            if not e.retryable:
                logger.error(f"Vote commit failed: user_id={user_id}, tapa_id={tapa_id}: {e}")
                return self._failed(e)

            logger.warning(f"Vote commit outcome unknown, confirming: {e}")
            vote = await self._confirm_vote(user_id, tapa_id)
            if vote is None:
                return self._failed(e)

        logger.info(f"Vote committed: user_id={user_id}, tapa_id={tapa_id}, stars={stars}")

        return SubmissionOutcome(
            status=SubmissionStatus.COMMITTED,
            title="¡Voto registrado!",
            message="Gracias por participar en la ruta de tapas.",
            vote=vote,
            raffle_unlocked=await self._raffle_unlocked(user_id)
        )

    async def _confirm_vote(self, user_id: str, tapa_id: str) -> Optional[Vote]:
        try:
            votes = await self.context.store.list_votes_by_user(user_id)
        except VoteStoreError as e:
            logger.error(f"Could not confirm vote for tapa {tapa_id}: {e}")
            return None
        return _find_vote(votes, tapa_id)

    async def _existing_vote_or_none(self, user_id: str, tapa_id: str) -> Optional[Vote]:
        # Advisory only; the store's uniqueness constraint decides
        try:
            votes = await self.context.store.list_votes_by_user(user_id)
        except VoteStoreError as e:
            logger.warning(f"Duplicate pre-check unavailable, relying on store: {e}")
            return None
        return _find_vote(votes, tapa_id)

    async def _raffle_unlocked(self, user_id: str) -> bool:
        try:
            votes = await self.context.store.list_votes_by_user(user_id)
        except VoteStoreError as e:
            logger.warning(f"Could not count votes for raffle progress: {e}")
            return False
        return is_eligible(len(votes))

    @staticmethod
    def _already_voted(vote: Vote) -> SubmissionOutcome:
        return SubmissionOutcome(
            status=SubmissionStatus.ALREADY_VOTED,
            title=DUPLICATE_VOTE_MESSAGE,
            message=f"Tu puntuación: {vote.stars} estrellas",
            vote=vote
        )

    @staticmethod
    def _ineligible(eligibility: EligibilityResult) -> SubmissionOutcome:
        if eligibility.status == EligibilityStatus.PENDING:
            return SubmissionOutcome(
                status=SubmissionStatus.LOCATION_PENDING,
                title="Ubicación requerida",
                message=eligibility.message
            )
        if eligibility.status == EligibilityStatus.ERROR:
            return SubmissionOutcome(
                status=SubmissionStatus.LOCATION_ERROR,
                title="Error de ubicación",
                message=eligibility.message,
                retryable=True
            )
        logger.warning(f"Vote blocked, user {eligibility.distance} m from venue")
        return SubmissionOutcome(
            status=SubmissionStatus.TOO_FAR,
            title="Estás demasiado lejos",
            message=eligibility.message
        )

    @staticmethod
    def _failed(error: VoteStoreError) -> SubmissionOutcome:
        return SubmissionOutcome(
            status=SubmissionStatus.FAILED,
            title="Error al votar",
            message=str(error) or "Inténtalo de nuevo",
            retryable=error.retryable
        )


def _find_vote(votes: List[Vote], tapa_id: str) -> Optional[Vote]:
    for vote in votes:
        if vote.tapa_id == tapa_id:
            return vote
    return None
