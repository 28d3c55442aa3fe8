"""
GPS evidence capture for the agent app.

A ``LocationCapture`` asks its provider for one high-accuracy fix with no
cached positions allowed. Failures are classified into ``DeviceError`` kinds
and exposed through ``error``; the public methods return ``None`` instead of
raising. Nothing here retries.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from app.client.errors import DeviceError, DeviceErrorKind
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Position error codes reported by geolocation providers
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3

MESSAGES = {
    DeviceErrorKind.UNSUPPORTED: "Geolocation is not supported by this device.",
    DeviceErrorKind.PERMISSION_DENIED: "Location permission denied. Please enable location access.",
    DeviceErrorKind.POSITION_UNAVAILABLE: "Location information unavailable.",
    DeviceErrorKind.TIMEOUT: "Location request timed out.",
    DeviceErrorKind.UNKNOWN: "An unknown error occurred while getting location.",
}


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout: float = settings.LOCATION_TIMEOUT_SECONDS
    maximum_age: int = 0


@dataclass(frozen=True)
class GeoPosition:
    latitude: float
    longitude: float
    accuracy: float
    # Milliseconds since the epoch, from the fix's own clock
    timestamp: float


class PositionError(Exception):
    """Raised by providers; ``code`` is one of the module-level error codes."""

    def __init__(self, code: int, message: str = ""):
        super().__init__(message or f"position error {code}")
        self.code = code


class GeolocationProvider(Protocol):
    async def get_current_position(self, options: PositionOptions) -> GeoPosition:
        ...


@dataclass(frozen=True)
class CapturedLocation:
    latitude: float
    longitude: float
    gps_timestamp: str
    accuracy: float

    @classmethod
    def from_position(cls, position: GeoPosition) -> "CapturedLocation":
        taken_at = datetime.fromtimestamp(position.timestamp / 1000, tz=timezone.utc)
        return cls(
            latitude=position.latitude,
            longitude=position.longitude,
            gps_timestamp=taken_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            accuracy=position.accuracy,
        )


def classify_position_error(exc: BaseException) -> DeviceErrorKind:
    if isinstance(exc, PositionError):
        return {
            PERMISSION_DENIED: DeviceErrorKind.PERMISSION_DENIED,
            POSITION_UNAVAILABLE: DeviceErrorKind.POSITION_UNAVAILABLE,
            TIMEOUT: DeviceErrorKind.TIMEOUT,
        }.get(exc.code, DeviceErrorKind.UNKNOWN)
    if isinstance(exc, PermissionError):
        return DeviceErrorKind.PERMISSION_DENIED
    if isinstance(exc, asyncio.TimeoutError):
        return DeviceErrorKind.TIMEOUT
    return DeviceErrorKind.UNKNOWN


class LocationCapture:
    def __init__(self, provider: Optional[GeolocationProvider], options: Optional[PositionOptions] = None):
        self._provider = provider
        self._options = options or PositionOptions()
        self._pending: Optional[asyncio.Task] = None
        self._auto_attempted = False

        self.location: Optional[CapturedLocation] = None
        self.error: Optional[DeviceError] = None

    @property
    def is_loading(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def capture_location(self) -> Optional[CapturedLocation]:
        """Acquire a fresh fix. Concurrent callers share the acquisition in flight."""
        if self.is_loading:
            return await asyncio.shield(self._pending)
        self._pending = asyncio.ensure_future(self._acquire())
        return await asyncio.shield(self._pending)

    async def ensure_location(self) -> Optional[CapturedLocation]:
        """The single automatic capture; a no-op once a fix is held or was attempted."""
        if self.location is not None or self._auto_attempted:
            return self.location
        self._auto_attempted = True
        return await self.capture_location()

    def _fail(self, kind: DeviceErrorKind, detail: Optional[str] = None) -> None:
        self.error = DeviceError(kind, MESSAGES[kind])
        logger.warning("Location capture failed (%s): %s", kind.value, detail or self.error.message)

    async def _acquire(self) -> Optional[CapturedLocation]:
        self.error = None
        if self._provider is None:
            self._fail(DeviceErrorKind.UNSUPPORTED)
            return None

        try:
            position = await asyncio.wait_for(
                self._provider.get_current_position(self._options),
                timeout=self._options.timeout,
            )
        except Exception as exc:
            self._fail(classify_position_error(exc), str(exc))
            return None

        self.location = CapturedLocation.from_position(position)
        logger.debug(
            "Location captured: %.6f, %.6f (accuracy %.1fm)",
            self.location.latitude, self.location.longitude, self.location.accuracy,
        )
        return self.location
