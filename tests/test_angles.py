import unittest

import numpy as np

from tiltsync.angles import (
    cardinal_direction,
    cross,
    deg_to_rad,
    dot,
    format_degrees,
    normalize,
    normalize_angle,
    rad_to_deg,
    shortest_delta,
)


class TestAngleMath(unittest.TestCase):
    def test_conversion(self):
        self.assertAlmostEqual(deg_to_rad(180.0), np.pi)
        self.assertAlmostEqual(rad_to_deg(np.pi / 2), 90.0)

    def test_normalize_angle_range(self):
        for angle in (-720.0, -360.0, -1.0, -1e-15, 0.0, 359.999, 360.0, 725.5, 1e6):
            wrapped = normalize_angle(angle)
            self.assertGreaterEqual(wrapped, 0.0, angle)
            self.assertLess(wrapped, 360.0, angle)
        self.assertAlmostEqual(normalize_angle(-90.0), 270.0)
        self.assertAlmostEqual(normalize_angle(725.0), 5.0)

    def test_shortest_delta_self_is_zero(self):
        for a in (-540.0, -10.0, 0.0, 123.4, 359.9, 1080.0):
            self.assertEqual(shortest_delta(a, a), 0.0)

    def test_shortest_delta_is_antisymmetric(self):
        pairs = [(10.0, 350.0), (350.0, 10.0), (0.0, 179.0), (-30.0, 400.0), (90.5, 271.0)]
        for a, b in pairs:
            self.assertAlmostEqual(shortest_delta(a, b), -shortest_delta(b, a))

    def test_shortest_delta_crosses_north(self):
        self.assertAlmostEqual(shortest_delta(350.0, 10.0), 20.0)
        self.assertAlmostEqual(shortest_delta(10.0, 350.0), -20.0)
        self.assertAlmostEqual(shortest_delta(0.0, 180.0), 180.0)

    def test_shift_by_full_turns(self):
        self.assertAlmostEqual(shortest_delta(10.0 + 720.0, 30.0), shortest_delta(10.0, 30.0))
        self.assertAlmostEqual(normalize_angle(47.0 - 1080.0), normalize_angle(47.0))

    def test_vector_ops(self):
        np.testing.assert_allclose(normalize((3.0, 0.0, 4.0)), [0.6, 0.0, 0.8])
        np.testing.assert_allclose(cross((1, 0, 0), (0, 1, 0)), [0.0, 0.0, 1.0])
        self.assertEqual(dot((1, 2, 3), (4, 5, 6)), 32.0)

    def test_normalize_zero_vector(self):
        np.testing.assert_array_equal(normalize((0.0, 0.0, 0.0)), [0.0, 0.0, 0.0])

    def test_cardinal_direction(self):
        self.assertEqual(cardinal_direction(0.0), "N")
        self.assertEqual(cardinal_direction(359.0), "N")
        self.assertEqual(cardinal_direction(90.0), "E")
        self.assertEqual(cardinal_direction(11.25), "NNE")
        self.assertEqual(cardinal_direction(225.0), "SW")

    def test_format_degrees(self):
        self.assertEqual(format_degrees(35.0), "35.0°")
        self.assertEqual(format_degrees(12.346, 2), "12.35°")


if __name__ == "__main__":
    unittest.main()
