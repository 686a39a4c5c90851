from __future__ import annotations

import logging
from pathlib import Path
import unittest
from unittest import mock

from focusflow.config import AppConfig, configure_logging


class TestConfig(unittest.TestCase):
    def test_from_env_reads_overrides(self) -> None:
        config = AppConfig.from_env(
            {
                "FOCUSFLOW_DB": "/tmp/ff.sqlite",
                "FOCUSFLOW_STATE": "/tmp/ff.json",
                "FOCUSFLOW_USER": " alice ",
                "FOCUSFLOW_LOG_LEVEL": "debug",
                "FOCUSFLOW_DEV_URL": "http://127.0.0.1:5173",
            }
        )
        self.assertEqual(config.db_path, Path("/tmp/ff.sqlite"))
        self.assertEqual(config.state_path, Path("/tmp/ff.json"))
        self.assertEqual(config.user_id, "alice")
        self.assertEqual(config.log_level, "DEBUG")
        self.assertEqual(config.dev_url, "http://127.0.0.1:5173")

    def test_from_env_defaults(self) -> None:
        config = AppConfig.from_env({"FOCUSFLOW_USER": "   "})
        self.assertIsNone(config.user_id)
        self.assertIsNone(config.dev_url)
        self.assertEqual(config.log_level, "WARNING")
        self.assertEqual(config.db_path.name, "focusflow.sqlite")
        self.assertEqual(config.state_path.name, "local_state.json")

    def test_configure_logging_sets_package_level(self) -> None:
        package_logger = logging.getLogger("focusflow")
        previous = package_logger.level
        self.addCleanup(package_logger.setLevel, previous)

        with mock.patch("focusflow.config.logging.basicConfig") as basic:
            configure_logging("info")
            self.assertEqual(package_logger.level, logging.INFO)
            configure_logging("nonsense")
            self.assertEqual(package_logger.level, logging.WARNING)
        self.assertEqual(basic.call_count, 2)


if __name__ == "__main__":
    unittest.main()
