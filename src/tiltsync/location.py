"""Location handling: cached fixes with background refresh, and validated manual coordinates."""

import logging
import math
import time
from collections.abc import Callable
from typing import Protocol

from tiltsync.messages import t
from tiltsync.models import GeoLocation

_LOGGER = logging.getLogger(__name__)

LOCATION_MAX_AGE_MS = 24 * 60 * 60 * 1000


class InvalidCoordinatesError(ValueError):
    """Manual coordinate is not a number or is out of range."""


class LocationPermissionError(Exception):
    """User denied location access."""


class LocationProvider(Protocol):
    async def request_permission(self) -> bool: ...

    async def current_position(self) -> GeoLocation: ...


class LocationStore(Protocol):
    """Persistence for the last known location. Storage mechanism is up to the caller."""

    async def load(self) -> GeoLocation | None: ...

    async def save(self, location: GeoLocation) -> None: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def parse_coordinate(text: str, lower: float, upper: float, message_key: str) -> float:
    try:
        value = float(text)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinatesError(t(message_key, value=text)) from e
    if math.isnan(value) or not lower <= value <= upper:
        raise InvalidCoordinatesError(t(message_key, value=text))
    return value


def validate_latitude(text: str) -> float:
    return parse_coordinate(text, -90.0, 90.0, "invalid_latitude")


def validate_longitude(text: str) -> float:
    return parse_coordinate(text, -180.0, 180.0, "invalid_longitude")


class ManualCoordinates:
    """User-entered coordinates. Invalid input is rejected and the last valid value kept."""

    def __init__(self, latitude: float | None = None, longitude: float | None = None):
        self.latitude = latitude
        self.longitude = longitude

    def submit_latitude(self, text: str) -> float | None:
        """Store text as the latitude; an empty string clears it.

        Raises:
            InvalidCoordinatesError: Previous value is kept.
        """
        self.latitude = None if text.strip() == "" else validate_latitude(text)
        return self.latitude

    def submit_longitude(self, text: str) -> float | None:
        self.longitude = None if text.strip() == "" else validate_longitude(text)
        return self.longitude

    @property
    def is_complete(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_location(self, now_ms: int | None = None) -> GeoLocation | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoLocation.manual(
            self.latitude, self.longitude, _now_ms() if now_ms is None else now_ms
        )


def effective_location(
    gps: GeoLocation | None,
    manual: ManualCoordinates,
    use_manual: bool,
    now_ms: int | None = None,
) -> GeoLocation | None:
    """Manual coordinates override GPS when enabled and complete."""
    if use_manual and manual.is_complete:
        return manual.to_location(now_ms)
    return gps


class LocationTracker:
    """Cached-first location state.

    A cached fix younger than 24 h is shown immediately while a fresh one is
    fetched. Errors are only surfaced when no location (fresh or cached) is held.
    """

    def __init__(
        self,
        provider: LocationProvider,
        store: LocationStore | None = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.provider = provider
        self.store = store
        self._clock = clock
        self.location: GeoLocation | None = None
        self.is_loading = True
        self.is_refreshing = False
        self.is_cached = False
        self.error: str | None = None
        self.permission_granted: bool | None = None

    async def initialize(self) -> None:
        if self.store is not None:
            cached = await self._load_cached(self.store)
            if cached is not None and self._clock() - cached.timestamp < LOCATION_MAX_AGE_MS:
                self.location = cached
                self.is_loading = False
                self.is_cached = True
        await self._fetch(manual=False)

    async def refresh(self) -> None:
        await self._fetch(manual=True)

    async def _fetch(self, manual: bool) -> None:
        has_data = self.location is not None
        self.is_loading = not has_data
        self.is_refreshing = has_data or manual
        self.error = None

        try:
            self.permission_granted = await self.provider.request_permission()
            if not self.permission_granted:
                raise LocationPermissionError(t("location_permission_denied"))
            fix = await self.provider.current_position()
        except LocationPermissionError as e:
            self._fail(str(e))
            return
        except (OSError, RuntimeError, ValueError) as e:
            _LOGGER.warning("Location fetch failed: %s", e)
            self._fail(str(e) or t("location_failed"))
            return

        location = GeoLocation(
            latitude=fix.latitude,
            longitude=fix.longitude,
            altitude=fix.altitude,
            accuracy=fix.accuracy or 0.0,
            timestamp=self._clock(),
        )
        self.location = location
        self.is_loading = False
        self.is_refreshing = False
        self.is_cached = False
        if self.store is not None:
            try:
                await self.store.save(location)
            except Exception as e:  # noqa: BLE001
                _LOGGER.warning("Could not persist location: %s", e)

    async def _load_cached(self, store: LocationStore) -> GeoLocation | None:
        try:
            return await store.load()
        except Exception as e:  # noqa: BLE001
            _LOGGER.warning("Could not read cached location: %s", e)
            return None

    def _fail(self, message: str) -> None:
        self.is_loading = False
        self.is_refreshing = False
        self.error = message if self.location is None else None
