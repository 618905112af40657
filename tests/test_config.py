import unittest

from tiltsync.config import DEFAULT_PVWATTS_URL, DEMO_KEY, ConfigError, Settings
from tiltsync.messages import t


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        settings = Settings.from_env({})
        self.assertEqual(settings.nrel_api_key, DEMO_KEY)
        self.assertEqual(settings.pvwatts_base_url, DEFAULT_PVWATTS_URL)
        self.assertEqual(settings.sensor_interval_ms, 100)
        self.assertEqual(settings.heading_smoothing, 0.25)
        self.assertFalse(settings.pvwatts_configured)

    def test_overrides(self):
        settings = Settings.from_env(
            {
                "NREL_API_KEY": "abc123",
                "PVWATTS_TIMEOUT": "3.5",
                "TILTSYNC_SENSOR_INTERVAL_MS": "50",
                "TILTSYNC_HEADING_SMOOTHING": "0.15",
                "TILTSYNC_LOCK_THRESHOLD": "",
            }
        )
        self.assertTrue(settings.pvwatts_configured)
        self.assertEqual(settings.pvwatts_timeout, 3.5)
        self.assertEqual(settings.sensor_interval_ms, 50)
        self.assertEqual(settings.heading_smoothing, 0.15)
        self.assertEqual(settings.lock_threshold, 0.5)

    def test_bad_number(self):
        with self.assertRaises(ConfigError):
            Settings.from_env({"PVWATTS_TIMEOUT": "soon"})


class TestMessages(unittest.TestCase):
    def test_lookup_and_format(self):
        self.assertEqual(
            t("accelerometer_unavailable"), "Accelerometer not available on this device"
        )
        self.assertIn("(95)", t("invalid_latitude", value="95"))

    def test_unknown_key_falls_back(self):
        self.assertEqual(t("no_such_message"), "no_such_message")


if __name__ == "__main__":
    unittest.main()
