"""
Geolocation provider.

Wraps a platform position source in a small state machine:

    IDLE -> REQUESTING -> READY(fix) | FAILED(reason)

request() from FAILED retries. A request made while another is in flight
joins it instead of starting a second platform call. Every request asks
for a fresh fix (maximum cached age 0 by default).
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..shared.models import LocationErrorReason
from .config import Config

logger = logging.getLogger(__name__)

LOCATION_ERROR_MESSAGES = {
    LocationErrorReason.PERMISSION_DENIED: "Permiso de ubicación denegado",
    LocationErrorReason.POSITION_UNAVAILABLE: "Ubicación no disponible",
    LocationErrorReason.TIMEOUT: "Tiempo de espera agotado",
    LocationErrorReason.UNSUPPORTED: "Geolocalización no soportada en este navegador",
}


class GeolocationStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class PositionFix:
    """Coordinates in decimal degrees, accuracy in meters."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


@dataclass(frozen=True)
class PositionOptions:
    high_accuracy: bool = Config.GEO_HIGH_ACCURACY
    timeout: float = Config.GEO_TIMEOUT_SECONDS
    maximum_age: float = Config.GEO_MAXIMUM_AGE


class LocationError(Exception):
    """A position request failed for one of the known reasons."""

    def __init__(self, reason: LocationErrorReason):
        super().__init__(LOCATION_ERROR_MESSAGES[reason])
        self.reason = reason


class PositionSource(ABC):
    """Platform capability: one-shot current position."""

    @abstractmethod
    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        """Return a fresh fix or raise LocationError."""
        ...


class StaticPositionSource(PositionSource):
    """Position source reporting a fixed, externally supplied fix."""

    def __init__(self, latitude: float, longitude: float, accuracy: Optional[float] = None):
        self.fix = PositionFix(latitude, longitude, accuracy)

    async def get_current_position(self, options: PositionOptions) -> PositionFix:
        return self.fix


class GeolocationProvider:
    """Tracks the result of the latest position request."""

    def __init__(
        self,
        source: Optional[PositionSource],
        options: Optional[PositionOptions] = None
    ):
        # source is None when the device has no positioning capability
        self.source = source
        self.options = options or PositionOptions()
        self.status = GeolocationStatus.IDLE
        self.fix: Optional[PositionFix] = None
        self.error: Optional[LocationErrorReason] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def has_location(self) -> bool:
        return self.status == GeolocationStatus.READY and self.fix is not None

    @property
    def is_requesting(self) -> bool:
        return self.status == GeolocationStatus.REQUESTING

    @property
    def error_message(self) -> Optional[str]:
        return LOCATION_ERROR_MESSAGES[self.error] if self.error else None

    def start(self) -> asyncio.Task:
        """
        Begin a position request without waiting for it.

        Returns the in-flight task; calling again while REQUESTING returns
        the same task.
        """
        if self._task is not None and not self._task.done():
            logger.debug("Position request already in flight, joining it")
            return self._task

        self.status = GeolocationStatus.REQUESTING
        self.error = None
        self._task = asyncio.create_task(self._run())
        return self._task

    async def request(self) -> GeolocationStatus:
        """Request a position and wait for the outcome."""
        await self.start()
        return self.status

    async def _run(self) -> None:
        if self.source is None:
            self._fail(LocationErrorReason.UNSUPPORTED)
            return

        try:
            fix = await asyncio.wait_for(
                self.source.get_current_position(self.options),
                timeout=self.options.timeout
            )
        except asyncio.TimeoutError:
            self._fail(LocationErrorReason.TIMEOUT)
            return
        except LocationError as e:
            self._fail(e.reason)
            return
        except Exception as e:
            logger.error(f"Position source error: {e}")
            self._fail(LocationErrorReason.POSITION_UNAVAILABLE)
            return

        self.fix = fix
        self.status = GeolocationStatus.READY
        logger.info(
            f"Position acquired: lat={fix.latitude}, lng={fix.longitude}, accuracy={fix.accuracy}"
        )

    def _fail(self, reason: LocationErrorReason) -> None:
        self.status = GeolocationStatus.FAILED
        self.error = reason
        logger.warning(f"Position request failed: {reason.value}")
