"""Orientation estimation: tilt, roll and heading from accelerometer and magnetometer samples.

Sensor axes follow the handheld convention: x to the right edge, y toward the top
edge, z out of the screen. A device lying flat screen-up reads gravity along +z.
"""

import logging
import math
from collections.abc import Callable
from typing import Protocol

from tiltsync.angles import cross, normalize, normalize_angle, rad_to_deg, shortest_delta
from tiltsync.config import Settings
from tiltsync.messages import t
from tiltsync.models import OrientationEstimate, RawVector3, SensorState

_LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 100
HEADING_DEAD_BAND = 0.3  # Degrees; smaller raw changes are treated as jitter
TILT_SMOOTHING = 0.3
FLAT_TILT_LIMIT = 60.0  # Above this the plain compass heading is unreliable


class SensorUnavailableError(Exception):
    """Sensor hardware missing or refused to start."""


class Subscription(Protocol):
    def remove(self) -> None: ...


class SensorProvider(Protocol):
    """Push-based source of RawVector3 samples."""

    def is_available(self) -> bool: ...

    def set_update_interval(self, interval_ms: int) -> None: ...

    def add_listener(self, callback: Callable[[RawVector3], None]) -> Subscription: ...


def tilt_from_accelerometer(accel: RawVector3) -> float:
    """Pitch magnitude in degrees, [0, 90]. 0 = flat, 90 = upright."""
    pitch = rad_to_deg(math.atan2(accel.y, math.sqrt(accel.x**2 + accel.z**2)))
    return max(0.0, min(90.0, abs(pitch)))


def roll_from_accelerometer(accel: RawVector3) -> float:
    """Signed side-to-side tilt in degrees."""
    return rad_to_deg(math.atan2(accel.x, math.sqrt(accel.y**2 + accel.z**2)))


def is_flat(tilt: float) -> bool:
    return tilt < FLAT_TILT_LIMIT


def tilt_compensated_heading(accel: RawVector3, mag: RawVector3) -> float:
    """Compass heading that stays valid when the device is not held flat.

    The magnetic field is projected onto the horizontal plane defined by gravity:
    East = M x G, North = G x East, and the heading is the angle of the device's
    y axis within that plane. M is used unnormalized.

    Returns:
        Heading in degrees, [0, 360).
    """
    gravity = normalize((accel.x, accel.y, accel.z))
    field = (mag.x, mag.y, mag.z)

    east = normalize(cross(field, gravity))
    north = normalize(cross(gravity, east))

    heading = rad_to_deg(math.atan2(east[1], north[1]))
    return normalize_angle(-heading)


def flat_heading(mag: RawVector3) -> float:
    """Plain 2D magnetometer heading. Only accurate below ~60 degrees of tilt."""
    return normalize_angle(-(rad_to_deg(math.atan2(mag.y, mag.x)) - 90.0))


class HeadingSmoother:
    """Continuous (unwrapped) heading accumulator.

    Each raw sample moves the accumulator by a fraction of the shortest signed
    delta, so the continuous value never jumps at the 0/360 boundary.
    """

    def __init__(self, smoothing_factor: float = 0.25, dead_band: float = HEADING_DEAD_BAND):
        self.smoothing_factor = smoothing_factor
        self.dead_band = dead_band
        self._continuous: float | None = None

    @property
    def continuous(self) -> float | None:
        return self._continuous

    def update(self, raw_heading: float) -> float:
        if self._continuous is None:
            self._continuous = raw_heading
            return self._continuous

        delta = shortest_delta(normalize_angle(self._continuous), raw_heading)
        if abs(delta) > self.dead_band:
            self._continuous += delta * self.smoothing_factor
        return self._continuous

    def reset(self) -> None:
        self._continuous = None


class _SensorEstimator:
    """Subscription bookkeeping and availability state shared by the estimators."""

    def __init__(self) -> None:
        self.state = SensorState(available=False)
        self._subscriptions: list[Subscription] = []

    def _attach(
        self,
        sensors: list[tuple[str, SensorProvider, Callable[[RawVector3], None]]],
        interval_ms: int,
    ) -> bool:
        self.stop()
        try:
            for name, provider, _ in sensors:
                if not provider.is_available():
                    self._mark_unavailable(t(f"{name}_unavailable"))
                    return False
            for _, provider, callback in sensors:
                provider.set_update_interval(interval_ms)
                self._subscriptions.append(provider.add_listener(callback))
        except Exception as e:  # noqa: BLE001
            self.stop()
            self._mark_unavailable(str(e) or t("sensor_init_failed"))
            return False

        self.state = SensorState(available=True)
        return True

    def _mark_unavailable(self, cause: str) -> None:
        _LOGGER.warning("Sensor unavailable: %s", cause)
        self.state = SensorState(available=False, cause=cause)

    def stop(self) -> None:
        """Remove every sensor subscription. Safe to call repeatedly."""
        while self._subscriptions:
            self._subscriptions.pop().remove()


class TiltEstimator(_SensorEstimator):
    """Accelerometer-only tilt and roll. No smoothing is applied."""

    def __init__(self, on_update: Callable[["TiltEstimator"], None] | None = None):
        super().__init__()
        self.tilt = 0.0
        self.roll = 0.0
        self.flat = True
        self._on_update = on_update

    def start(self, accelerometer: SensorProvider, interval_ms: int = DEFAULT_INTERVAL_MS) -> bool:
        return self._attach([("accelerometer", accelerometer, self.on_sample)], interval_ms)

    def on_sample(self, accel: RawVector3) -> None:
        self.tilt = tilt_from_accelerometer(accel)
        self.roll = roll_from_accelerometer(accel)
        self.flat = is_flat(self.tilt)
        if self._on_update is not None:
            self._on_update(self)


class CompassEstimator(_SensorEstimator):
    """Magnetometer-only heading with continuous smoothing."""

    def __init__(
        self,
        smoothing_factor: float = 0.25,
        on_update: Callable[[OrientationEstimate], None] | None = None,
    ):
        super().__init__()
        self._smoother = HeadingSmoother(smoothing_factor)
        self._on_update = on_update
        self.estimate: OrientationEstimate | None = None

    def start(self, magnetometer: SensorProvider, interval_ms: int = DEFAULT_INTERVAL_MS) -> bool:
        self._smoother.reset()
        return self._attach([("magnetometer", magnetometer, self.on_sample)], interval_ms)

    def on_sample(self, mag: RawVector3) -> None:
        continuous = self._smoother.update(flat_heading(mag))
        self.estimate = OrientationEstimate.from_continuous(
            tilt=0.0, roll=0.0, raw_heading=continuous
        )
        if self._on_update is not None:
            self._on_update(self.estimate)


class OrientationEstimator(_SensorEstimator):
    """Fused accelerometer + magnetometer estimator.

    Recomputes on every sample from either sensor once both have reported.
    Tilt and roll use exponential smoothing; heading uses HeadingSmoother.
    The first fused sample initializes all accumulators directly.
    """

    def __init__(
        self,
        smoothing_factor: float = 0.25,
        tilt_smoothing: float = TILT_SMOOTHING,
        on_update: Callable[[OrientationEstimate], None] | None = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ):
        super().__init__()
        self.tilt_smoothing = tilt_smoothing
        self.interval_ms = interval_ms
        self._smoother = HeadingSmoother(smoothing_factor)
        self._on_update = on_update
        self._accel: RawVector3 | None = None
        self._mag: RawVector3 | None = None
        self._tilt: float | None = None
        self._roll = 0.0
        self.estimate: OrientationEstimate | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        on_update: Callable[[OrientationEstimate], None] | None = None,
    ) -> "OrientationEstimator":
        return cls(
            smoothing_factor=settings.heading_smoothing,
            on_update=on_update,
            interval_ms=settings.sensor_interval_ms,
        )

    def start(
        self,
        accelerometer: SensorProvider,
        magnetometer: SensorProvider,
        interval_ms: int | None = None,
    ) -> bool:
        self.reset()
        return self._attach(
            [
                ("accelerometer", accelerometer, self.on_accelerometer),
                ("magnetometer", magnetometer, self.on_magnetometer),
            ],
            self.interval_ms if interval_ms is None else interval_ms,
        )

    def reset(self) -> None:
        self._accel = None
        self._mag = None
        self._tilt = None
        self._roll = 0.0
        self._smoother.reset()
        self.estimate = None

    def on_accelerometer(self, sample: RawVector3) -> None:
        self._accel = sample
        self._recompute()

    def on_magnetometer(self, sample: RawVector3) -> None:
        self._mag = sample
        self._recompute()

    def _recompute(self) -> None:
        accel, mag = self._accel, self._mag
        if accel is None or mag is None:
            return

        tilt = tilt_from_accelerometer(accel)
        roll = roll_from_accelerometer(accel)
        if self._tilt is None:
            self._tilt, self._roll = tilt, roll
        else:
            self._tilt += (tilt - self._tilt) * self.tilt_smoothing
            self._roll += (roll - self._roll) * self.tilt_smoothing

        continuous = self._smoother.update(tilt_compensated_heading(accel, mag))
        self.estimate = OrientationEstimate.from_continuous(
            tilt=max(0.0, min(90.0, self._tilt)),
            roll=self._roll,
            raw_heading=continuous,
        )
        if self._on_update is not None:
            self._on_update(self.estimate)
