"""Decides when to refresh the live PVWatts tilt; the most recently issued request wins."""

import asyncio
import logging
from collections.abc import Callable

from tiltsync.messages import t
from tiltsync.models import Confidence, GeoLocation
from tiltsync.pvwatts import PVWattsClient, cache_key

_LOGGER = logging.getLogger(__name__)


def source_label(confidence: Confidence) -> str:
    """Short provenance line shown next to an estimated tilt."""
    return t(f"{Confidence(confidence).value}_source")


class LiveTiltTracker:
    """Live-estimate state for one consumer.

    Fetches when enabled, when the rounded location bucket changes, when the
    variant switches, and when the app returns to the foreground. Each fetch
    captures a generation number at creation; a result whose generation is no
    longer current is discarded.
    """

    def __init__(
        self,
        client: PVWattsClient,
        winter_priority: bool = False,
        on_change: Callable[["LiveTiltTracker"], None] | None = None,
    ):
        self.client = client
        self.winter_priority = winter_priority
        self.tilt: float | None = None
        self.loading = False
        self.confidence: Confidence | None = None
        self._on_change = on_change
        self._enabled = False
        self._location: GeoLocation | None = None
        self._bucket: str | None = None
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_live(self) -> bool:
        return self.confidence is Confidence.LIVE

    def update(self, location: GeoLocation | None, enabled: bool) -> asyncio.Task | None:
        """Feed the latest location/enabled pair. Returns the fetch task, if one started."""
        self._enabled = enabled
        self._location = location
        if not enabled or location is None:
            self._generation += 1
            self._bucket = None
            self._set_state(None, False, None)
            return None

        bucket = cache_key(location.latitude, location.longitude)
        if bucket == self._bucket:
            return None
        self._bucket = bucket
        return self._start_fetch()

    def set_winter_priority(self, winter_priority: bool) -> asyncio.Task | None:
        if winter_priority == self.winter_priority:
            return None
        self.winter_priority = winter_priority
        self._set_state(None, False, None)
        return self.refresh()

    def on_foreground(self) -> asyncio.Task | None:
        return self.refresh()

    def refresh(self) -> asyncio.Task | None:
        if not self._enabled or self._location is None:
            return None
        return self._start_fetch()

    def close(self) -> None:
        """Cancel in-flight fetches and invalidate their results."""
        self._generation += 1
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _start_fetch(self) -> asyncio.Task | None:
        location = self._location
        if location is None:
            return None
        lat, lon = location.latitude, location.longitude

        self._generation += 1
        generation = self._generation

        cached = (
            self.client.cached_winter_tilt(lat, lon)
            if self.winter_priority
            else self.client.cached_tilt(lat, lon)
        )
        if cached is not None:
            self._set_state(cached, False, Confidence.CACHED)
            return None

        self._set_state(self.tilt, True, self.confidence)
        task = asyncio.get_running_loop().create_task(
            self._fetch(generation, lat, lon, self.winter_priority)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, generation: int, lat: float, lon: float, winter_priority: bool) -> None:
        if winter_priority:
            result = await self.client.winter_priority_tilt(lat, lon)
        else:
            result = await self.client.optimal_tilt(lat, lon)

        if generation != self._generation:
            _LOGGER.debug("Discarding superseded PVWatts result (generation %d)", generation)
            return
        self._set_state(result.tilt, False, result.confidence)

    def _set_state(self, tilt: float | None, loading: bool, confidence: Confidence | None) -> None:
        self.tilt, self.loading, self.confidence = tilt, loading, confidence
        if self._on_change is not None:
            self._on_change(self)
