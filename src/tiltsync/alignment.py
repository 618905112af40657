"""Alignment evaluation: deviation, tri-level status and percentage scores."""

from tiltsync.angles import shortest_delta
from tiltsync.models import AlignmentResult, AlignmentStatus

TILT_BEST = 2.0
TILT_GOOD = 5.0
# Direction matters less than tilt for yield, so azimuth tolerances are wider
AZIMUTH_BEST = 5.0
AZIMUTH_GOOD = 15.0

TILT_MAX_DEVIATION = 45.0
AZIMUTH_MAX_DEVIATION = 90.0

STATUS_COLORS: dict[AlignmentStatus, str] = {
    AlignmentStatus.BEST: "#22c55e",  # Green
    AlignmentStatus.GOOD: "#eab308",  # Amber
    AlignmentStatus.BAD: "#ef4444",  # Red
}


def status_for(deviation: float, best: float, good: float) -> AlignmentStatus:
    magnitude = abs(deviation)
    if magnitude <= best:
        return AlignmentStatus.BEST
    if magnitude <= good:
        return AlignmentStatus.GOOD
    return AlignmentStatus.BAD


def tilt_status(deviation: float) -> AlignmentStatus:
    return status_for(deviation, TILT_BEST, TILT_GOOD)


def azimuth_status(deviation: float) -> AlignmentStatus:
    return status_for(deviation, AZIMUTH_BEST, AZIMUTH_GOOD)


def angle_deviation(current: float, target: float) -> float:
    """Circular current - target, in (-180, 180]."""
    return shortest_delta(target, current)


def alignment_percentage(deviation: float, max_deviation: float = TILT_MAX_DEVIATION) -> int:
    """100 when aligned, falling linearly to 0 at max_deviation."""
    percentage = max(0.0, 100.0 - abs(deviation) / max_deviation * 100.0)
    # Half-up like the display layer, not banker's rounding
    return int(percentage + 0.5)


def alignment_result(
    current_tilt: float,
    target_tilt: float,
    current_azimuth: float,
    target_azimuth: float,
) -> AlignmentResult:
    tilt_deviation = current_tilt - target_tilt
    azimuth_deviation = angle_deviation(current_azimuth, target_azimuth)
    return AlignmentResult(
        tilt_deviation=tilt_deviation,
        azimuth_deviation=azimuth_deviation,
        tilt_status=tilt_status(tilt_deviation),
        azimuth_status=azimuth_status(azimuth_deviation),
        tilt_percentage=alignment_percentage(tilt_deviation),
        azimuth_percentage=alignment_percentage(azimuth_deviation, AZIMUTH_MAX_DEVIATION),
    )


def overall_percentage(result: AlignmentResult) -> int:
    return int((result.tilt_percentage + result.azimuth_percentage) / 2 + 0.5)


def combined_status(*statuses: AlignmentStatus) -> AlignmentStatus:
    """Worst of the given statuses: bad dominates good dominates best."""
    return max(statuses, key=lambda status: status.rank)


def status_color(status: AlignmentStatus) -> str:
    return STATUS_COLORS[status]


def _hex_to_rgb(color: str) -> tuple[int, int, int]:
    return int(color[1:3], 16), int(color[3:5], 16), int(color[5:7], 16)


def _interpolate(color1: str, color2: str, t: float) -> str:
    r1, g1, b1 = _hex_to_rgb(color1)
    r2, g2, b2 = _hex_to_rgb(color2)
    r = int(r1 + (r2 - r1) * t + 0.5)
    g = int(g1 + (g2 - g1) * t + 0.5)
    b = int(b1 + (b2 - b1) * t + 0.5)
    return f"#{r:02x}{g:02x}{b:02x}"


def interpolated_color(deviation: float, best: float, good: float) -> str:
    """Continuous green -> amber -> red color, saturating at 3x the good threshold."""
    magnitude = abs(deviation)
    if magnitude <= best:
        return STATUS_COLORS[AlignmentStatus.BEST]
    if magnitude <= good:
        t = (magnitude - best) / (good - best)
        return _interpolate(
            STATUS_COLORS[AlignmentStatus.BEST], STATUS_COLORS[AlignmentStatus.GOOD], t
        )
    saturation = good * 3
    t = min(1.0, (magnitude - good) / (saturation - good))
    return _interpolate(STATUS_COLORS[AlignmentStatus.GOOD], STATUS_COLORS[AlignmentStatus.BAD], t)
