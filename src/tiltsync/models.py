"""Data model definitions: explicit boundaries between sensor, compute, and feedback layers."""

from dataclasses import dataclass
from enum import Enum

from tiltsync.angles import normalize_angle


class AlignmentMode(str, Enum):
    """Temporal model that produces the target tilt."""

    YEAR_ROUND = "year-round"
    SEASONAL = "seasonal"
    DAILY = "daily"


class CalculationAlgorithm(str, Enum):
    """Tilt-estimation formula. The two PVWatts variants are fetched over HTTP."""

    SIMPLE = "simple"
    OPTIMIZED = "optimized"
    LANDAU = "landau"
    JACOBSON = "jacobson"
    PVWATTS = "pvwatts"
    PVWATTS_LIVE = "pvwatts-live"
    PVWATTS_WINTER = "pvwatts-winter"

    @property
    def is_live(self) -> bool:
        return self in (CalculationAlgorithm.PVWATTS_LIVE, CalculationAlgorithm.PVWATTS_WINTER)


class AlignmentStatus(str, Enum):
    """Tri-level deviation classification, ordered best < good < bad."""

    BEST = "best"
    GOOD = "good"
    BAD = "bad"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {AlignmentStatus.BEST: 0, AlignmentStatus.GOOD: 1, AlignmentStatus.BAD: 2}


class Hemisphere(str, Enum):
    NORTHERN = "northern"
    SOUTHERN = "southern"


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"


class Confidence(str, Enum):
    """Provenance of an estimated tilt."""

    LIVE = "live"
    CACHED = "cached"
    FALLBACK = "fallback"


class HapticIntensity(str, Enum):
    NONE = "none"
    APPROACHING = "approaching"
    CLOSE = "close"
    VERY_CLOSE = "very_close"
    LOCKED = "locked"


class HapticStyle(str, Enum):
    """Discrete pulse styles a haptic actuator can play."""

    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"
    SUCCESS = "success"
    SELECTION = "selection"


@dataclass(frozen=True)
class RawVector3:
    """One accelerometer or magnetometer sample in the device frame."""

    x: float
    y: float
    z: float


@dataclass(frozen=True)
class OrientationEstimate:
    """Smoothed device orientation. Build with from_continuous() only."""

    tilt: float  # Degrees from horizontal, [0, 90]
    roll: float  # Side-to-side tilt (degrees)
    heading: float  # Wrapped compass heading, [0, 360)
    raw_heading: float  # Continuous heading, unbounded; heading == normalize(raw_heading)

    @classmethod
    def from_continuous(
        cls, tilt: float, roll: float, raw_heading: float
    ) -> "OrientationEstimate":
        return cls(
            tilt=tilt,
            roll=roll,
            heading=normalize_angle(raw_heading),
            raw_heading=raw_heading,
        )

    @property
    def display_heading(self) -> float:
        """Heading for display; values within half a degree of 360 read as 0."""
        return 0.0 if self.heading >= 359.5 else self.heading


@dataclass(frozen=True)
class SensorState:
    """Availability of a sensor stream. Unavailable is distinct from a zero reading."""

    available: bool
    cause: str | None = None  # Human-readable reason when unavailable


@dataclass(frozen=True)
class GeoLocation:
    """A position fix from GPS or manual entry. Ranges are checked on creation."""

    latitude: float  # [-90, 90]
    longitude: float  # [-180, 180]
    altitude: float | None  # Meters, None for manual entry
    accuracy: float  # Meters, 0 for manual entry
    timestamp: int  # Epoch milliseconds

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude must be -90 to 90, got {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude must be -180 to 180, got {self.longitude}")

    @classmethod
    def manual(cls, latitude: float, longitude: float, now_ms: int) -> "GeoLocation":
        """Synthetic location from user-entered coordinates."""
        return cls(
            latitude=latitude,
            longitude=longitude,
            altitude=None,
            accuracy=0.0,
            timestamp=now_ms,
        )


@dataclass(frozen=True)
class OptimalAngles:
    """Target panel orientation. Always a fresh computation result."""

    tilt: float  # Degrees from horizontal, [0, 90]
    azimuth: float  # Direction the device top should point, [0, 360)
    hemisphere: Hemisphere


@dataclass(frozen=True)
class AlignmentResult:
    """Current-vs-target comparison snapshot."""

    tilt_deviation: float  # current - target, signed, unbounded
    azimuth_deviation: float  # Circular difference, (-180, 180]
    tilt_status: AlignmentStatus
    azimuth_status: AlignmentStatus
    tilt_percentage: int  # 0-100
    azimuth_percentage: int  # 0-100


@dataclass(frozen=True)
class EstimationCacheEntry:
    tilt: float  # Degrees
    timestamp: int  # Epoch milliseconds when stored


@dataclass(frozen=True)
class PVWattsEstimate:
    """The parts of a PVWatts response the sweeps rely on."""

    ac_annual: float  # Annual AC energy (kWh)
    ac_monthly: tuple[float, ...]  # 12 values, index 0 = January
    solrad_annual: float | None = None
    capacity_factor: float | None = None


@dataclass(frozen=True)
class OptimalTiltResult:
    tilt: float
    annual_production: float
    confidence: Confidence


@dataclass(frozen=True)
class WinterPriorityResult:
    tilt: float
    december_production: float
    june_production: float
    confidence: Confidence


@dataclass(frozen=True)
class AlgorithmInfo:
    """Algorithm metadata for comparison displays."""

    id: CalculationAlgorithm
    name: str
    short_name: str
    description: str
    formula: str
