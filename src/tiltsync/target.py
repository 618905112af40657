"""CLI entry point for printing panel targets.

Edit the latitude/longitude variables at the top, then run:
    uv run python -m tiltsync.target
"""

import asyncio
import logging
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

from tiltsync.angles import cardinal_direction, format_degrees  # noqa: E402
from tiltsync.config import Settings  # noqa: E402
from tiltsync.live import source_label  # noqa: E402
from tiltsync.models import AlignmentMode, GeoLocation  # noqa: E402
from tiltsync.pvwatts import PVWattsClient  # noqa: E402
from tiltsync.solar import (  # noqa: E402
    ALGORITHMS,
    calculate_all_algorithms,
    calculate_optimal_angles,
    local_time_at,
)

latitude = 35.1
longitude = 129.0


async def _print_live(settings: Settings, location: GeoLocation) -> None:
    async with PVWattsClient.from_settings(settings) as client:
        production, winter = await asyncio.gather(
            client.optimal_tilt(location.latitude, location.longitude),
            client.winter_priority_tilt(location.latitude, location.longitude),
        )
    for label, result in (("PVWatts Live", production), ("Winter Priority", winter)):
        source = source_label(result.confidence)
        print(f"{label + ':':<16} {format_degrees(result.tilt)} ({source})")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = Settings.from_env()
    location = GeoLocation.manual(latitude, longitude, now_ms=0)
    when = local_time_at(location, datetime.now(timezone.utc)).replace(tzinfo=None)

    names = {info.id: info.short_name for info in ALGORITHMS}
    for mode in AlignmentMode:
        angles = calculate_optimal_angles(location, mode, when)
        print(
            f"[{mode.value}] azimuth {format_degrees(angles.azimuth)} "
            f"({cardinal_direction(angles.azimuth)}), {angles.hemisphere.value} hemisphere"
        )
        for algorithm, tilt in calculate_all_algorithms(location.latitude, mode, when).items():
            print(f"  {names[algorithm]:<10} {format_degrees(tilt)}")

    if settings.pvwatts_configured:
        asyncio.run(_print_live(settings, location))


if __name__ == "__main__":
    main()
