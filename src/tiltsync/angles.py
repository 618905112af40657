"""Angle and 3-vector helpers shared by the estimator, calculator, and evaluator."""

import math

import numpy as np

_CARDINALS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)  # fmt: skip


def deg_to_rad(degrees: float) -> float:
    return degrees * (math.pi / 180.0)


def rad_to_deg(radians: float) -> float:
    return radians * (180.0 / math.pi)


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [0, 360)."""
    wrapped = ((angle % 360.0) + 360.0) % 360.0
    # Tiny negative inputs round up to exactly 360.0 in float arithmetic
    return 0.0 if wrapped >= 360.0 else wrapped


def shortest_delta(from_angle: float, to_angle: float) -> float:
    """Signed shortest rotation from from_angle to to_angle, in (-180, 180]."""
    delta = (to_angle - from_angle) % 360.0
    if delta > 180.0:
        delta -= 360.0
    return delta


def normalize(v) -> np.ndarray:
    """Unit vector along v; the zero vector for a degenerate (zero-magnitude) input."""
    arr = np.asarray(v, dtype=float)
    mag = float(np.linalg.norm(arr))
    if mag == 0.0:
        return np.zeros(3)
    return arr / mag


def cross(a, b) -> np.ndarray:
    return np.cross(np.asarray(a, dtype=float), np.asarray(b, dtype=float))


def dot(a, b) -> float:
    return float(np.dot(np.asarray(a, dtype=float), np.asarray(b, dtype=float)))


def cardinal_direction(heading: float) -> str:
    """16-point compass label for a heading in degrees."""
    index = math.floor(normalize_angle(heading) / 22.5 + 0.5) % 16
    return _CARDINALS[index]


def format_degrees(degrees: float, decimals: int = 1) -> str:
    return f"{degrees:.{decimals}f}°"
