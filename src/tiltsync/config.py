"""Environment-driven settings. Entry points call load_dotenv() before Settings.from_env()."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_PVWATTS_URL = "https://developer.nrel.gov/api/pvwatts/v8.json"
DEMO_KEY = "DEMO_KEY"


class ConfigError(ValueError):
    """Environment variable present but unparseable."""


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    nrel_api_key: str = DEMO_KEY
    pvwatts_base_url: str = DEFAULT_PVWATTS_URL
    pvwatts_timeout: float = 10.0  # Seconds
    sensor_interval_ms: int = 100  # ~10 Hz
    heading_smoothing: float = 0.25  # 0.15 suits noisier sensor platforms
    lock_threshold: float = 0.5  # Degrees

    @property
    def pvwatts_configured(self) -> bool:
        return bool(self.nrel_api_key) and self.nrel_api_key != DEMO_KEY

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Read settings from environ (defaults to os.environ).

        Raises:
            ConfigError: When a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        return cls(
            nrel_api_key=env.get("NREL_API_KEY", DEMO_KEY),
            pvwatts_base_url=env.get("PVWATTS_BASE_URL", DEFAULT_PVWATTS_URL),
            pvwatts_timeout=_float(env, "PVWATTS_TIMEOUT", 10.0),
            sensor_interval_ms=int(_float(env, "TILTSYNC_SENSOR_INTERVAL_MS", 100)),
            heading_smoothing=_float(env, "TILTSYNC_HEADING_SMOOTHING", 0.25),
            lock_threshold=_float(env, "TILTSYNC_LOCK_THRESHOLD", 0.5),
        )
