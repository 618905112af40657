"""Proximity haptics: pulse cadence quickens as deviation shrinks, one confirmation on lock."""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from tiltsync.config import Settings
from tiltsync.models import HapticIntensity, HapticStyle

_LOGGER = logging.getLogger(__name__)

APPROACHING_THRESHOLD = 10.0
CLOSE_THRESHOLD = 5.0
VERY_CLOSE_THRESHOLD = 2.0
DEFAULT_LOCK_THRESHOLD = 0.5

# Milliseconds between pulses; LOCKED is a single confirmation, not periodic
PULSE_INTERVALS_MS: dict[HapticIntensity, int] = {
    HapticIntensity.APPROACHING: 500,
    HapticIntensity.CLOSE: 250,
    HapticIntensity.VERY_CLOSE: 100,
}

_STYLES: dict[HapticIntensity, HapticStyle] = {
    HapticIntensity.APPROACHING: HapticStyle.LIGHT,
    HapticIntensity.CLOSE: HapticStyle.MEDIUM,
    HapticIntensity.VERY_CLOSE: HapticStyle.HEAVY,
    HapticIntensity.LOCKED: HapticStyle.SUCCESS,
}


class HapticActuator(Protocol):
    def pulse(self, style: HapticStyle) -> None: ...


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


TimerFactory = Callable[[int, Callable[[], None]], TimerHandle]


class LoopInterval:
    """Repeating timer on the running asyncio loop. Fires every interval_ms until cancelled."""

    def __init__(self, interval_ms: int, callback: Callable[[], None]):
        self._loop = asyncio.get_running_loop()
        self._interval = interval_ms / 1000.0
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        if self._handle is None:
            return
        self._handle = self._loop.call_later(self._interval, self._fire)
        self._callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


def intensity_for(
    deviation: float, lock_threshold: float = DEFAULT_LOCK_THRESHOLD
) -> HapticIntensity:
    magnitude = abs(deviation)
    if magnitude <= lock_threshold:
        return HapticIntensity.LOCKED
    if magnitude <= VERY_CLOSE_THRESHOLD:
        return HapticIntensity.VERY_CLOSE
    if magnitude <= CLOSE_THRESHOLD:
        return HapticIntensity.CLOSE
    if magnitude <= APPROACHING_THRESHOLD:
        return HapticIntensity.APPROACHING
    return HapticIntensity.NONE


def style_for(intensity: HapticIntensity) -> HapticStyle | None:
    return _STYLES.get(intensity)


class HapticScheduler:
    """State machine over HapticIntensity that owns its pulse timer.

    Entering LOCKED fires one confirmation and stops the periodic timer; it is
    edge-triggered and only re-arms after the deviation leaves the lock
    threshold. Any other intensity change fires one immediate pulse and
    restarts the timer at the new cadence. NONE clears the timer.
    """

    def __init__(
        self,
        actuator: HapticActuator,
        lock_threshold: float = DEFAULT_LOCK_THRESHOLD,
        timer_factory: TimerFactory | None = None,
        enabled: bool = True,
    ):
        self.actuator = actuator
        self.lock_threshold = lock_threshold
        self._timer_factory: TimerFactory = timer_factory or LoopInterval
        self._enabled = enabled
        self._intensity = HapticIntensity.NONE
        self._locked = False
        self._timer: TimerHandle | None = None
        self._disposed = False

    @classmethod
    def from_settings(
        cls, settings: Settings, actuator: HapticActuator, **kwargs
    ) -> "HapticScheduler":
        return cls(actuator, lock_threshold=settings.lock_threshold, **kwargs)

    @property
    def intensity(self) -> HapticIntensity:
        return self._intensity

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def enabled(self) -> bool:
        return self._enabled and not self._disposed

    def on_deviation_sample(self, deviation: float) -> None:
        if not self.enabled:
            return

        intensity = intensity_for(deviation, self.lock_threshold)

        if intensity is HapticIntensity.LOCKED:
            if not self._locked:
                self._locked = True
                self._intensity = intensity
                self._cancel_timer()
                self._pulse(intensity)
            return

        self._locked = False
        if intensity is self._intensity:
            return

        _LOGGER.debug("Haptic intensity %s -> %s", self._intensity.value, intensity.value)
        self._intensity = intensity
        self._cancel_timer()

        interval = PULSE_INTERVALS_MS.get(intensity)
        if interval is None:
            return
        self._pulse(intensity)
        self._timer = self._timer_factory(interval, lambda: self._pulse(intensity))

    def set_enabled(self, enabled: bool) -> None:
        """Disabling stops pulses immediately; re-enabling starts from a clean state."""
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if not enabled:
            self._reset()

    def dispose(self) -> None:
        self._disposed = True
        self._reset()

    def _reset(self) -> None:
        self._cancel_timer()
        self._intensity = HapticIntensity.NONE
        self._locked = False

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _pulse(self, intensity: HapticIntensity) -> None:
        style = style_for(intensity)
        if style is None:
            return
        try:
            self.actuator.pulse(style)
        except Exception as e:  # noqa: BLE001
            _LOGGER.debug("Haptic pulse failed: %s", e)
