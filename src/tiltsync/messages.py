"""User-facing strings for unavailable sensors, location errors, and feedback labels."""

_STRINGS: dict[str, str] = {
    "accelerometer_unavailable": "Accelerometer not available on this device",
    "magnetometer_unavailable": "Magnetometer not available on this device",
    "sensor_init_failed": "Failed to initialize sensors",
    "location_permission_denied": (
        "Location permission denied. Please enable location access in settings."
    ),
    "location_failed": "Failed to get location",
    "invalid_latitude": "Latitude must be a number between -90 and 90 ({value})",
    "invalid_longitude": "Longitude must be a number between -180 and 180 ({value})",
    "live_source": "Live data from NREL PVWatts API",
    "fallback_source": "Estimated (PVWatts unavailable)",
    "cached_source": "Cached PVWatts result",
}


def t(key: str, **params: object) -> str:
    """Return the message for key, formatted with params.

    Falls back to the key itself if not found.
    """
    text = _STRINGS.get(key)
    if text is None:
        return key
    return text.format(**params) if params else text
