"""NREL PVWatts client: empirically optimal tilt via parallel angle sweeps, cached per location.

https://developer.nrel.gov/docs/solar/pvwatts/
"""

import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from tiltsync.config import DEFAULT_PVWATTS_URL, DEMO_KEY, Settings
from tiltsync.models import (
    Confidence,
    EstimationCacheEntry,
    OptimalTiltResult,
    PVWattsEstimate,
    WinterPriorityResult,
)
from tiltsync.solar import pvwatts_tilt, winter_fallback_tilt

_LOGGER = logging.getLogger(__name__)

CACHE_DURATION_MS = 24 * 60 * 60 * 1000

# Fixed system description sent with every request
SYSTEM_CAPACITY_KW = 4  # Standard residential system
ARRAY_TYPE = 1  # Fixed roof mount
MODULE_TYPE = 0  # Standard module
LOSSES_PCT = 14

PRODUCTION_OFFSETS = (-10, -5, 0, 5, 10)
WINTER_MAX_OFFSET = 25
WINTER_STEP = 5
JUNE, DECEMBER = 5, 11  # ac_monthly indices


class PVWattsError(Exception):
    """PVWatts returned a non-2xx status or an unusable payload."""


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(latitude: float, longitude: float) -> str:
    """Coordinates rounded to 2 decimals (~1.1 km), which is also the privacy bucket."""
    return f"{latitude:.2f},{longitude:.2f}"


class TTLCache:
    """Tilt values keyed by rounded coordinates, expiring after ttl_ms."""

    def __init__(self, ttl_ms: int = CACHE_DURATION_MS, clock: Callable[[], int] = _now_ms):
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[str, EstimationCacheEntry] = {}

    def get(self, key: str) -> float | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_ms:
            del self._entries[key]
            return None
        return entry.tilt

    def set(self, key: str, tilt: float) -> None:
        self._entries[key] = EstimationCacheEntry(tilt=tilt, timestamp=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _panel_azimuth(latitude: float) -> int:
    """Azimuth the panel faces: south (180) in the northern hemisphere, north (0) otherwise."""
    return 180 if latitude >= 0 else 0


def production_candidates(base_tilt: float) -> list[float]:
    """base ± 10, ± 5 and base itself, clipped to [0, 90] without duplicates."""
    candidates: list[float] = []
    for offset in PRODUCTION_OFFSETS:
        tilt = max(0.0, min(90.0, base_tilt + offset))
        if tilt not in candidates:
            candidates.append(tilt)
    return candidates


def winter_candidates(base_tilt: float) -> list[float]:
    """base up to base + 25 in 5 degree steps, dropping anything past 90."""
    return [
        base_tilt + offset
        for offset in range(0, WINTER_MAX_OFFSET + 1, WINTER_STEP)
        if 0.0 <= base_tilt + offset <= 90.0
    ]


def _parse_estimate(payload: object) -> PVWattsEstimate:
    try:
        errors = payload.get("errors")  # type: ignore[union-attr]
        if errors:
            raise PVWattsError(f"PVWatts errors: {errors}")
        outputs = payload["outputs"]  # type: ignore[index]
        monthly = tuple(float(v) for v in outputs["ac_monthly"])
        if len(monthly) != 12:
            raise PVWattsError(f"ac_monthly has {len(monthly)} values, expected 12")
        return PVWattsEstimate(
            ac_annual=float(outputs["ac_annual"]),
            ac_monthly=monthly,
            solrad_annual=outputs.get("solrad_annual"),
            capacity_factor=outputs.get("capacity_factor"),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise PVWattsError(f"Malformed PVWatts payload: {e}") from e


class PVWattsClient:
    """Async PVWatts client with per-variant TTL caches and formula fallback.

    The two public estimators never raise on network or payload failure; they
    return a result tagged Confidence.FALLBACK instead.
    """

    def __init__(
        self,
        api_key: str = DEMO_KEY,
        base_url: str = DEFAULT_PVWATTS_URL,
        http_client: httpx.AsyncClient | None = None,
        tilt_cache: TTLCache | None = None,
        winter_cache: TTLCache | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.tilt_cache = tilt_cache if tilt_cache is not None else TTLCache()
        self.winter_cache = winter_cache if winter_cache is not None else TTLCache()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "PVWattsClient":
        return cls(
            api_key=settings.nrel_api_key,
            base_url=settings.pvwatts_base_url,
            timeout=settings.pvwatts_timeout,
            **kwargs,
        )

    async def __aenter__(self) -> "PVWattsClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def call(
        self,
        latitude: float,
        longitude: float,
        tilt: float | None = None,
        azimuth: float | None = None,
    ) -> PVWattsEstimate:
        """Single PVWatts request. Coordinates are rounded to 2 decimals before sending.

        Raises:
            PVWattsError: On a non-2xx response or malformed payload.
            httpx.HTTPError: On transport failure.
        """
        params = {
            "api_key": self.api_key,
            "lat": f"{latitude:.2f}",
            "lon": f"{longitude:.2f}",
            "system_capacity": SYSTEM_CAPACITY_KW,
            "azimuth": _panel_azimuth(latitude) if azimuth is None else azimuth,
            "tilt": abs(latitude) if tilt is None else tilt,
            "array_type": ARRAY_TYPE,
            "module_type": MODULE_TYPE,
            "losses": LOSSES_PCT,
        }
        resp = await self._http.get(self.base_url, params=params)
        if not resp.is_success:
            raise PVWattsError(f"PVWatts API error: {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise PVWattsError(f"PVWatts returned invalid JSON: {e}") from e
        return _parse_estimate(payload)

    async def _sweep(
        self, latitude: float, longitude: float, tilts: list[float]
    ) -> list[PVWattsEstimate | None]:
        azimuth = _panel_azimuth(latitude)

        async def one(tilt: float) -> PVWattsEstimate | None:
            try:
                return await self.call(latitude, longitude, tilt=tilt, azimuth=azimuth)
            except (httpx.HTTPError, PVWattsError) as e:
                _LOGGER.debug("PVWatts candidate tilt=%s failed: %s", tilt, e)
                return None

        return list(await asyncio.gather(*(one(tilt) for tilt in tilts)))

    async def optimal_tilt(self, latitude: float, longitude: float) -> OptimalTiltResult:
        """Tilt with the highest annual AC yield among five candidates around |latitude|."""
        key = cache_key(latitude, longitude)
        cached = self.tilt_cache.get(key)
        if cached is not None:
            _LOGGER.debug("PVWatts tilt cache hit for %s", key)
            return OptimalTiltResult(
                tilt=cached, annual_production=0.0, confidence=Confidence.CACHED
            )

        tilts = production_candidates(abs(latitude))
        estimates = await self._sweep(latitude, longitude, tilts)

        best_tilt, best_production = abs(latitude), 0.0
        for tilt, estimate in zip(tilts, estimates):
            production = estimate.ac_annual if estimate is not None else 0.0
            if production > best_production:
                best_tilt, best_production = tilt, production

        if best_production <= 0.0:
            fallback = pvwatts_tilt(latitude)
            _LOGGER.warning("PVWatts sweep failed for %s, using fallback tilt %.1f", key, fallback)
            return OptimalTiltResult(
                tilt=fallback, annual_production=0.0, confidence=Confidence.FALLBACK
            )

        self.tilt_cache.set(key, best_tilt)
        return OptimalTiltResult(
            tilt=best_tilt, annual_production=best_production, confidence=Confidence.LIVE
        )

    async def winter_priority_tilt(self, latitude: float, longitude: float) -> WinterPriorityResult:
        """Steepest tilt (|latitude| to +25) whose June yield does not drop below December's."""
        key = cache_key(latitude, longitude)
        cached = self.winter_cache.get(key)
        if cached is not None:
            _LOGGER.debug("PVWatts winter cache hit for %s", key)
            return WinterPriorityResult(
                tilt=cached,
                december_production=0.0,
                june_production=0.0,
                confidence=Confidence.CACHED,
            )

        tilts = winter_candidates(abs(latitude))
        estimates = await self._sweep(latitude, longitude, tilts)
        rows = [
            (tilt, e.ac_monthly[JUNE], e.ac_monthly[DECEMBER])
            if e is not None
            else (tilt, 0.0, 0.0)
            for tilt, e in zip(tilts, estimates)
        ]

        if all(e is None for e in estimates):
            fallback = winter_fallback_tilt(latitude)
            _LOGGER.warning(
                "PVWatts winter sweep failed for %s, using fallback tilt %.1f", key, fallback
            )
            return WinterPriorityResult(
                tilt=fallback,
                december_production=0.0,
                june_production=0.0,
                confidence=Confidence.FALLBACK,
            )

        rows.sort(key=lambda row: row[0], reverse=True)
        best = rows[-1]  # Shallowest unless a steeper angle qualifies
        for row in rows:
            _, june, december = row
            if june >= december and december > 0:
                best = row
                break

        tilt, june, december = best
        self.winter_cache.set(key, tilt)
        return WinterPriorityResult(
            tilt=tilt,
            december_production=december,
            june_production=june,
            confidence=Confidence.LIVE,
        )

    async def estimate(self, latitude: float, longitude: float) -> PVWattsEstimate | None:
        """Quick single-call estimate at tilt = |latitude|; None on failure."""
        try:
            return await self.call(latitude, longitude)
        except (httpx.HTTPError, PVWattsError) as e:
            _LOGGER.warning("PVWatts estimate failed: %s", e)
            return None

    def cached_tilt(self, latitude: float, longitude: float) -> float | None:
        return self.tilt_cache.get(cache_key(latitude, longitude))

    def cached_winter_tilt(self, latitude: float, longitude: float) -> float | None:
        return self.winter_cache.get(cache_key(latitude, longitude))

    def clear_cache(self) -> None:
        self.tilt_cache.clear()
        self.winter_cache.clear()
