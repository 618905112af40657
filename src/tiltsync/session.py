"""One guidance session: target from location and mode, alignment from orientation, haptics."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from tiltsync.alignment import alignment_result
from tiltsync.haptics import HapticScheduler
from tiltsync.live import LiveTiltTracker
from tiltsync.models import (
    AlignmentMode,
    AlignmentResult,
    CalculationAlgorithm,
    GeoLocation,
    OptimalAngles,
    OrientationEstimate,
    SensorState,
)
from tiltsync.pvwatts import PVWattsClient
from tiltsync.solar import calculate_optimal_angles

_LOGGER = logging.getLogger(__name__)

DAILY_REFRESH_SECONDS = 60.0
# Azimuth error is scaled down before driving haptics; direction tolerates more
AZIMUTH_HAPTIC_SCALE = 3.0


class GuidanceAxis(str, Enum):
    TILT = "tilt"
    AZIMUTH = "azimuth"
    PANEL = "panel"  # Both axes; the worse one drives haptics


def haptic_deviation(result: AlignmentResult, axis: GuidanceAxis) -> float:
    tilt = abs(result.tilt_deviation)
    azimuth = abs(result.azimuth_deviation) / AZIMUTH_HAPTIC_SCALE
    if axis is GuidanceAxis.TILT:
        return tilt
    if axis is GuidanceAxis.AZIMUTH:
        return azimuth
    return max(tilt, azimuth)


class AlignmentSession:
    """Wires the pipeline for one active view.

    Must be used from a running asyncio loop. In daily mode a cancellable task
    recomputes the target every minute. close() cancels every timer and task.
    """

    def __init__(
        self,
        haptics: HapticScheduler,
        mode: AlignmentMode = AlignmentMode.YEAR_ROUND,
        algorithm: CalculationAlgorithm = CalculationAlgorithm.SIMPLE,
        axis: GuidanceAxis = GuidanceAxis.PANEL,
        client: PVWattsClient | None = None,
        clock: Callable[[], datetime] = datetime.now,
        refresh_seconds: float = DAILY_REFRESH_SECONDS,
    ):
        self.haptics = haptics
        self.mode = AlignmentMode(mode)
        self.algorithm = CalculationAlgorithm(algorithm)
        self.axis = GuidanceAxis(axis)
        self.refresh_seconds = refresh_seconds
        self._clock = clock
        self.live: LiveTiltTracker | None = (
            LiveTiltTracker(
                client,
                winter_priority=self.algorithm is CalculationAlgorithm.PVWATTS_WINTER,
                on_change=lambda _: self._recompute(),
            )
            if client is not None
            else None
        )

        self.location: GeoLocation | None = None
        self.sensor_state = SensorState(available=True)
        self.target: OptimalAngles | None = None
        self.result: AlignmentResult | None = None
        self._refresh_task: asyncio.Task | None = None
        self._closed = False
        self._sync_haptics()

    def set_location(self, location: GeoLocation | None) -> None:
        self.location = location
        self._recompute()
        self._sync_live()
        self._schedule_refresh()

    def set_mode(self, mode: AlignmentMode) -> None:
        self.mode = AlignmentMode(mode)
        self._recompute()
        self._schedule_refresh()

    def set_algorithm(self, algorithm: CalculationAlgorithm) -> None:
        self.algorithm = CalculationAlgorithm(algorithm)
        if self.live is not None and self.algorithm.is_live:
            self.live.set_winter_priority(self.algorithm is CalculationAlgorithm.PVWATTS_WINTER)
        self._sync_live()
        self._recompute()

    def set_sensor_state(self, state: SensorState) -> None:
        self.sensor_state = state
        self._sync_haptics()

    def on_foreground(self) -> None:
        if self.live is not None:
            self.live.on_foreground()
        self._recompute()

    def on_orientation(self, estimate: OrientationEstimate) -> AlignmentResult | None:
        if self._closed or self.target is None:
            return None
        self.result = alignment_result(
            estimate.tilt, self.target.tilt, estimate.heading, self.target.azimuth
        )
        self.haptics.on_deviation_sample(haptic_deviation(self.result, self.axis))
        return self.result

    def close(self) -> None:
        """End the session. Safe to call more than once."""
        self._closed = True
        self._cancel_refresh()
        if self.live is not None:
            self.live.close()
        self.haptics.dispose()

    def _recompute(self) -> None:
        if self._closed:
            return
        if self.location is None:
            self.target = None
            self.result = None
        else:
            live_tilt = self.live.tilt if self.live is not None else None
            self.target = calculate_optimal_angles(
                self.location, self.mode, self._clock(), self.algorithm, live_tilt
            )
        self._sync_haptics()

    def _sync_live(self) -> None:
        if self.live is not None and not self._closed:
            self.live.update(self.location, self.algorithm.is_live)

    def _sync_haptics(self) -> None:
        self.haptics.set_enabled(self.target is not None and self.sensor_state.available)

    def _schedule_refresh(self) -> None:
        self._cancel_refresh()
        if self._closed or self.mode is not AlignmentMode.DAILY or self.location is None:
            return
        self._refresh_task = asyncio.get_running_loop().create_task(self._refresh_loop())

    def _cancel_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_seconds)
            _LOGGER.debug("Recomputing daily target")
            self._recompute()
