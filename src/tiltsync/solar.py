"""Solar target calculation: optimal panel tilt and azimuth for a location, mode and algorithm."""

import logging
import math
from datetime import datetime

from pytz import timezone, utc
from timezonefinder import TimezoneFinder

from tiltsync.angles import deg_to_rad, rad_to_deg
from tiltsync.models import (
    AlgorithmInfo,
    AlignmentMode,
    CalculationAlgorithm,
    GeoLocation,
    Hemisphere,
    OptimalAngles,
    Season,
)

_LOGGER = logging.getLogger(__name__)

SEASONAL_ADJUSTMENT = 15.0  # Degrees added in winter, removed in summer
EARTH_AXIAL_TILT = 23.45  # Degrees
WINTER_FALLBACK_OFFSET = 15.0

_tf = TimezoneFinder()

ALGORITHMS: tuple[AlgorithmInfo, ...] = (
    AlgorithmInfo(
        id=CalculationAlgorithm.SIMPLE,
        name="Simple Latitude",
        short_name="Simple",
        description="Classic rule: tilt equals your latitude. Maximizes direct sunlight.",
        formula="tilt = latitude",
    ),
    AlgorithmInfo(
        id=CalculationAlgorithm.OPTIMIZED,
        name="Energy Optimized",
        short_name="Optimized",
        description="Accounts for diffuse radiation. Better total annual energy.",
        formula="tilt = latitude × 0.9",
    ),
    AlgorithmInfo(
        id=CalculationAlgorithm.LANDAU,
        name="Landau Formula",
        short_name="Landau",
        description="Research-backed empirical formula for maximum energy yield.",
        formula="tilt = latitude × 0.76 + 3.1°",
    ),
    AlgorithmInfo(
        id=CalculationAlgorithm.JACOBSON,
        name="Jacobson Polynomial",
        short_name="Jacobson",
        description="Academic polynomial curve fit from simulation data.",
        formula="tilt = polynomial(latitude)",
    ),
    AlgorithmInfo(
        id=CalculationAlgorithm.PVWATTS,
        name="PVWatts Estimate",
        short_name="PVWatts",
        description="Approximates NREL PVWatts model used by professionals.",
        formula="tilt ≈ latitude × 0.87",
    ),
    AlgorithmInfo(
        id=CalculationAlgorithm.PVWATTS_LIVE,
        name="PVWatts Live",
        short_name="Live",
        description="Real-time calculation from NREL PVWatts API. Requires internet.",
        formula="NREL API (industry standard)",
    ),
    AlgorithmInfo(
        id=CalculationAlgorithm.PVWATTS_WINTER,
        name="Winter Priority",
        short_name="Winter",
        description="Maximizes winter output without sacrificing summer. Ideal for 24/7 systems.",
        formula="NREL API (worst-month optimized)",
    ),
)

FORMULA_ALGORITHMS: tuple[CalculationAlgorithm, ...] = tuple(
    info.id for info in ALGORITHMS if not info.id.is_live
)

_SOUTHERN_SEASON = {
    Season.SPRING: Season.FALL,
    Season.SUMMER: Season.WINTER,
    Season.FALL: Season.SPRING,
    Season.WINTER: Season.SUMMER,
}


def hemisphere_for(latitude: float) -> Hemisphere:
    return Hemisphere.NORTHERN if latitude >= 0 else Hemisphere.SOUTHERN


def optimal_azimuth(latitude: float) -> float:
    """Direction the device top should point when laid on the panel.

    A south-facing panel (northern hemisphere) slopes up toward the north, so the
    device top points north (0). North-facing panels in the south give 180.
    """
    return 0.0 if latitude >= 0 else 180.0


def day_of_year(when: datetime) -> int:
    return when.timetuple().tm_yday


def current_season(when: datetime, hemisphere: Hemisphere = Hemisphere.NORTHERN) -> Season:
    """Meteorological season for the month of when, flipped for the southern hemisphere."""
    month = when.month
    if 3 <= month <= 5:
        season = Season.SPRING
    elif 6 <= month <= 8:
        season = Season.SUMMER
    elif 9 <= month <= 11:
        season = Season.FALL
    else:
        season = Season.WINTER

    if hemisphere is Hemisphere.SOUTHERN:
        season = _SOUTHERN_SEASON[season]
    return season


def solar_declination(day: int) -> float:
    """Sun's declination in degrees: 23.45 × sin(360/365 × (N - 81))."""
    return EARTH_AXIAL_TILT * math.sin(deg_to_rad((360.0 / 365.0) * (day - 81)))


def hour_angle(hour: float) -> float:
    """Degrees from solar noon, 15 per hour. hour is the local clock hour (0-24)."""
    return 15.0 * (hour - 12.0)


def solar_altitude(latitude: float, declination: float, hour_angle_deg: float) -> float:
    lat = deg_to_rad(latitude)
    dec = deg_to_rad(declination)
    ha = deg_to_rad(hour_angle_deg)
    sin_alt = math.sin(lat) * math.sin(dec) + math.cos(lat) * math.cos(dec) * math.cos(ha)
    return rad_to_deg(math.asin(max(-1.0, min(1.0, sin_alt))))


def simple_tilt(latitude: float) -> float:
    return abs(latitude)


def optimized_tilt(latitude: float) -> float:
    return abs(latitude) * 0.9


def landau_tilt(latitude: float) -> float:
    return abs(latitude) * 0.76 + 3.1


def jacobson_tilt(latitude: float) -> float:
    lat = abs(latitude)
    return 1.3793 + lat * (1.2011 + lat * (-0.014404 + lat * 0.000080509))


def pvwatts_tilt(latitude: float) -> float:
    """Linear approximation of the NREL PVWatts optimum."""
    return abs(latitude) * 0.87


def winter_fallback_tilt(latitude: float) -> float:
    return min(90.0, abs(latitude) + WINTER_FALLBACK_OFFSET)


_FORMULAS = {
    CalculationAlgorithm.SIMPLE: simple_tilt,
    CalculationAlgorithm.OPTIMIZED: optimized_tilt,
    CalculationAlgorithm.LANDAU: landau_tilt,
    CalculationAlgorithm.JACOBSON: jacobson_tilt,
    CalculationAlgorithm.PVWATTS: pvwatts_tilt,
    # Formula stand-ins for the two API variants when no live result exists
    CalculationAlgorithm.PVWATTS_LIVE: pvwatts_tilt,
    CalculationAlgorithm.PVWATTS_WINTER: winter_fallback_tilt,
}


def tilt_by_algorithm(
    latitude: float, algorithm: CalculationAlgorithm = CalculationAlgorithm.SIMPLE
) -> float:
    return _FORMULAS[CalculationAlgorithm(algorithm)](latitude)


def year_round_tilt(
    latitude: float, algorithm: CalculationAlgorithm = CalculationAlgorithm.SIMPLE
) -> float:
    return tilt_by_algorithm(latitude, algorithm)


def _shift_for_season(base_tilt: float, season: Season) -> float:
    if season is Season.SUMMER:
        return max(0.0, base_tilt - SEASONAL_ADJUSTMENT)
    if season is Season.WINTER:
        return min(90.0, base_tilt + SEASONAL_ADJUSTMENT)
    return base_tilt


def seasonal_tilt(
    latitude: float,
    season: Season,
    algorithm: CalculationAlgorithm = CalculationAlgorithm.SIMPLE,
) -> float:
    return _shift_for_season(tilt_by_algorithm(latitude, algorithm), season)


def daily_tilt(latitude: float, when: datetime | None = None) -> float:
    """Tilt perpendicular to the sun's current rays, clamped to [0, 90].

    when is read as local wall-clock time; no longitude or equation-of-time
    correction is applied.
    """
    when = when or datetime.now()
    hour = when.hour + when.minute / 60.0
    declination = solar_declination(day_of_year(when))
    altitude = solar_altitude(latitude, declination, hour_angle(hour))
    return max(0.0, min(90.0, 90.0 - altitude))


def adjust_for_mode(
    base_tilt: float, latitude: float, mode: AlignmentMode, when: datetime | None = None
) -> float:
    """Apply a mode to a base tilt that came from outside the formula set."""
    when = when or datetime.now()
    mode = AlignmentMode(mode)
    if mode is AlignmentMode.DAILY:
        return daily_tilt(latitude, when)
    if mode is AlignmentMode.SEASONAL:
        return _shift_for_season(base_tilt, current_season(when, hemisphere_for(latitude)))
    return base_tilt


def calculate_optimal_angles(
    location: GeoLocation,
    mode: AlignmentMode,
    when: datetime | None = None,
    algorithm: CalculationAlgorithm = CalculationAlgorithm.SIMPLE,
    live_tilt: float | None = None,
) -> OptimalAngles:
    """Target tilt and azimuth for a location.

    Daily mode tracks the sun and ignores the algorithm. For the two PVWatts
    algorithms, live_tilt is the base tilt; until one is available the
    variant's formula fallback is used.

    Args:
        location: GPS or manual location.
        mode: Temporal model.
        when: Local wall-clock time. Defaults to now.
        algorithm: Tilt formula.
        live_tilt: Base tilt from the estimation client, if any.

    Returns:
        OptimalAngles for the location.
    """
    when = when or datetime.now()
    latitude = location.latitude
    algorithm = CalculationAlgorithm(algorithm)

    if algorithm.is_live and live_tilt is not None:
        base = live_tilt
    else:
        base = tilt_by_algorithm(latitude, algorithm)

    return OptimalAngles(
        tilt=adjust_for_mode(base, latitude, mode, when),
        azimuth=optimal_azimuth(latitude),
        hemisphere=hemisphere_for(latitude),
    )


def calculate_all_algorithms(
    latitude: float,
    mode: AlignmentMode = AlignmentMode.YEAR_ROUND,
    when: datetime | None = None,
) -> dict[CalculationAlgorithm, float]:
    """Tilt for every formula algorithm at once, for comparison displays."""
    when = when or datetime.now()
    return {
        algorithm: adjust_for_mode(tilt_by_algorithm(latitude, algorithm), latitude, mode, when)
        for algorithm in FORMULA_ALGORITHMS
    }


def local_time_at(location: GeoLocation, utc_dt: datetime) -> datetime:
    """Wall-clock time at location for a UTC instant.

    Naive utc_dt is taken as UTC. Locations without a named zone (open ocean)
    use the nautical Etc/GMT offset for their longitude.
    """
    if utc_dt.tzinfo is None:
        utc_dt = utc.localize(utc_dt)

    tz_str = _tf.timezone_at(lat=location.latitude, lng=location.longitude)
    if tz_str is None:
        offset = round(location.longitude / 15.0)
        # Etc/GMT names have inverted signs
        tz_str = f"Etc/GMT{-offset:+d}" if offset else "Etc/GMT"
        _LOGGER.debug("No timezone for %s, using %s", location, tz_str)
    return utc_dt.astimezone(timezone(tz_str))
