import math
import unittest

import numpy as np

from tiltsync.angles import normalize_angle, shortest_delta
from tiltsync.config import Settings
from tiltsync.models import OrientationEstimate, RawVector3
from tiltsync.orientation import (
    CompassEstimator,
    HeadingSmoother,
    OrientationEstimator,
    SensorUnavailableError,
    TiltEstimator,
    flat_heading,
    is_flat,
    roll_from_accelerometer,
    tilt_compensated_heading,
    tilt_from_accelerometer,
)

UP = np.array([0.0, 0.0, 1.0])
FIELD = np.array([0.0, 20.0, -40.0])  # Northward and downward, world frame (x east, y north, z up)


def rot_x(deg):
    r = math.radians(deg)
    return np.array([[1, 0, 0], [0, math.cos(r), -math.sin(r)], [0, math.sin(r), math.cos(r)]])


def rot_z(deg):
    r = math.radians(deg)
    return np.array([[math.cos(r), -math.sin(r), 0], [math.sin(r), math.cos(r), 0], [0, 0, 1]])


def readings(rotation):
    """Accelerometer and magnetometer samples for a device-to-world rotation."""
    accel = rotation.T @ UP
    mag = rotation.T @ FIELD
    return RawVector3(*accel), RawVector3(*mag)


class FakeSubscription:
    def __init__(self, sensor, callback):
        self.sensor = sensor
        self.callback = callback

    def remove(self):
        self.sensor.listeners.remove(self.callback)


class FakeSensor:
    def __init__(self, available=True, error=None, listen_error=None):
        self.available = available
        self.error = error
        self.listen_error = listen_error
        self.interval = None
        self.listeners = []

    def is_available(self):
        if self.error is not None:
            raise self.error
        return self.available

    def set_update_interval(self, interval_ms):
        self.interval = interval_ms

    def add_listener(self, callback):
        if self.listen_error is not None:
            raise self.listen_error
        self.listeners.append(callback)
        return FakeSubscription(self, callback)

    def emit(self, sample):
        for callback in list(self.listeners):
            callback(sample)


class TestTiltAndRoll(unittest.TestCase):
    def test_flat_and_upright(self):
        self.assertAlmostEqual(tilt_from_accelerometer(RawVector3(0, 0, 1)), 0.0)
        self.assertAlmostEqual(tilt_from_accelerometer(RawVector3(0, 1, 0)), 90.0)
        self.assertAlmostEqual(tilt_from_accelerometer(RawVector3(0, -1, 0)), 90.0)
        self.assertAlmostEqual(tilt_from_accelerometer(RawVector3(0, 1, 1)), 45.0)

    def test_roll(self):
        self.assertAlmostEqual(roll_from_accelerometer(RawVector3(1, 0, 1)), 45.0)
        self.assertAlmostEqual(roll_from_accelerometer(RawVector3(-1, 0, 1)), -45.0)

    def test_is_flat(self):
        self.assertTrue(is_flat(59.9))
        self.assertFalse(is_flat(60.0))


class TestHeading(unittest.TestCase):
    def test_flat_pointing_north(self):
        accel, mag = readings(np.eye(3))
        heading = tilt_compensated_heading(accel, mag)
        self.assertAlmostEqual(shortest_delta(0.0, heading), 0.0, places=6)

    def test_pitch_does_not_change_heading(self):
        for yaw in (30.0, 100.0, 200.0, 300.0):
            flat = tilt_compensated_heading(*readings(rot_z(yaw)))
            for pitch in (20.0, 45.0, 70.0):
                tilted = tilt_compensated_heading(*readings(rot_z(yaw) @ rot_x(pitch)))
                self.assertAlmostEqual(
                    shortest_delta(flat, tilted), 0.0, places=6, msg=(yaw, pitch)
                )

    def test_quarter_turn_moves_heading_ninety(self):
        start = tilt_compensated_heading(*readings(rot_z(0.0)))
        turned = tilt_compensated_heading(*readings(rot_z(90.0)))
        self.assertAlmostEqual(abs(shortest_delta(start, turned)), 90.0, places=6)

    def test_field_magnitude_is_irrelevant(self):
        accel, mag = readings(rot_z(75.0) @ rot_x(30.0))
        scaled = RawVector3(mag.x * 5, mag.y * 5, mag.z * 5)
        self.assertAlmostEqual(
            tilt_compensated_heading(accel, mag), tilt_compensated_heading(accel, scaled)
        )

    def test_degenerate_reading_stays_in_range(self):
        heading = tilt_compensated_heading(RawVector3(0, 0, 0), RawVector3(0, 0, 0))
        self.assertGreaterEqual(heading, 0.0)
        self.assertLess(heading, 360.0)

    def test_flat_heading(self):
        self.assertAlmostEqual(flat_heading(RawVector3(0, 1, 0)), 0.0)
        self.assertAlmostEqual(flat_heading(RawVector3(1, 0, 0)), 90.0)


class TestHeadingSmoother(unittest.TestCase):
    def test_first_sample_initializes_directly(self):
        smoother = HeadingSmoother(smoothing_factor=0.25)
        self.assertEqual(smoother.update(123.0), 123.0)

    def test_dead_band_rejects_jitter(self):
        smoother = HeadingSmoother(smoothing_factor=0.25)
        smoother.update(100.0)
        self.assertEqual(smoother.update(100.2), 100.0)
        self.assertEqual(smoother.update(99.75), 100.0)

    def test_smoothing_moves_fraction_of_delta(self):
        smoother = HeadingSmoother(smoothing_factor=0.25)
        smoother.update(100.0)
        self.assertAlmostEqual(smoother.update(120.0), 105.0)

    def test_crossing_north_stays_continuous(self):
        smoother = HeadingSmoother(smoothing_factor=0.5)
        smoother.update(350.0)
        values = [smoother.update(10.0) for _ in range(10)]
        for prev, cur in zip(values, values[1:]):
            self.assertGreaterEqual(cur, prev)
            self.assertLess(cur - prev, 20.0)
        self.assertGreater(values[-1], 360.0)
        self.assertAlmostEqual(normalize_angle(values[-1]), 10.0, delta=0.5)

    def test_estimate_keeps_wrapped_and_continuous_in_sync(self):
        estimate = OrientationEstimate.from_continuous(tilt=10.0, roll=0.0, raw_heading=-30.0)
        self.assertAlmostEqual(estimate.heading, 330.0)
        self.assertEqual(estimate.raw_heading, -30.0)
        near_north = OrientationEstimate.from_continuous(tilt=0.0, roll=0.0, raw_heading=719.7)
        self.assertEqual(near_north.display_heading, 0.0)


class TestEstimators(unittest.TestCase):
    def test_unavailable_magnetometer_is_reported(self):
        accel, mag = FakeSensor(), FakeSensor(available=False)
        estimator = OrientationEstimator()
        self.assertFalse(estimator.start(accel, mag))
        self.assertFalse(estimator.state.available)
        self.assertEqual(estimator.state.cause, "Magnetometer not available on this device")
        self.assertEqual(accel.listeners, [])
        self.assertIsNone(estimator.estimate)

    def test_availability_check_error_becomes_cause(self):
        estimator = TiltEstimator()
        sensor = FakeSensor(error=SensorUnavailableError("permission revoked"))
        self.assertFalse(estimator.start(sensor))
        self.assertEqual(estimator.state.cause, "permission revoked")

    def test_listener_failure_releases_earlier_subscriptions(self):
        accel = FakeSensor()
        mag = FakeSensor(listen_error=RuntimeError("sensor service crashed"))
        estimator = OrientationEstimator()
        self.assertFalse(estimator.start(accel, mag))
        self.assertEqual(accel.listeners, [])
        self.assertFalse(estimator.state.available)
        self.assertEqual(estimator.state.cause, "sensor service crashed")

    def test_unexplained_failure_gets_default_cause(self):
        estimator = TiltEstimator()
        self.assertFalse(estimator.start(FakeSensor(listen_error=RuntimeError())))
        self.assertEqual(estimator.state.cause, "Failed to initialize sensors")

    def test_start_and_stop_manage_subscriptions(self):
        accel, mag = FakeSensor(), FakeSensor()
        estimator = OrientationEstimator()
        self.assertTrue(estimator.start(accel, mag, interval_ms=100))
        self.assertTrue(estimator.state.available)
        self.assertEqual(accel.interval, 100)
        self.assertEqual(len(mag.listeners), 1)
        estimator.stop()
        self.assertEqual(accel.listeners, [])
        self.assertEqual(mag.listeners, [])

    def test_fused_estimate_needs_both_sensors(self):
        accel, mag = FakeSensor(), FakeSensor()
        updates = []
        estimator = OrientationEstimator(on_update=updates.append)
        estimator.start(accel, mag)
        a, m = readings(rot_x(45.0))
        accel.emit(a)
        self.assertEqual(updates, [])
        mag.emit(m)
        self.assertEqual(len(updates), 1)
        # First fused sample is taken as-is, not ramped up from zero
        self.assertAlmostEqual(updates[0].tilt, 45.0)

    def test_fused_tilt_is_exponentially_smoothed(self):
        accel, mag = FakeSensor(), FakeSensor()
        estimator = OrientationEstimator(tilt_smoothing=0.3)
        estimator.start(accel, mag)
        a, m = readings(rot_x(45.0))
        mag.emit(m)
        accel.emit(a)
        accel.emit(RawVector3(0, 0, 1))
        self.assertAlmostEqual(estimator.estimate.tilt, 45.0 * 0.7)

    def test_tilt_estimator_reports_flatness(self):
        updates = []
        estimator = TiltEstimator(on_update=lambda e: updates.append((e.tilt, e.flat)))
        sensor = FakeSensor()
        estimator.start(sensor)
        sensor.emit(RawVector3(0, 1, 0.2))
        self.assertEqual(len(updates), 1)
        self.assertGreater(updates[0][0], 60.0)
        self.assertFalse(updates[0][1])

    def test_from_settings(self):
        settings = Settings.from_env({"TILTSYNC_SENSOR_INTERVAL_MS": "40"})
        estimator = OrientationEstimator.from_settings(settings)
        accel, mag = FakeSensor(), FakeSensor()
        estimator.start(accel, mag)
        self.assertEqual(accel.interval, 40)
        self.assertEqual(mag.interval, 40)

    def test_compass_estimator(self):
        sensor = FakeSensor()
        estimator = CompassEstimator()
        estimator.start(sensor)
        sensor.emit(RawVector3(1, 0, 0))
        self.assertAlmostEqual(estimator.estimate.heading, 90.0)
        self.assertAlmostEqual(estimator.estimate.raw_heading, 90.0)


if __name__ == "__main__":
    unittest.main()
