"""
Unit tests for logging helpers.
"""

import io
import logging
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lidar_slam.utils.logger import get_logger, setup_logger


class TestLogger(unittest.TestCase):
    """Test logger setup."""

    def tearDown(self):
        for name in ("logtest_pkg", "logtest_pkg.sensor.reader"):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()

    def test_module_logger_propagates_to_package(self):
        """Test that a module logger made before setup does not print twice."""
        child = get_logger("logtest_pkg.sensor.reader")
        self.assertEqual(child.handlers, [])
        self.assertEqual(len(logging.getLogger("logtest_pkg").handlers), 1)

        package = setup_logger("logtest_pkg")
        stream = io.StringIO()
        package.handlers[0].setStream(stream)

        child.info("frame dropped")
        self.assertEqual(child.handlers, [])
        self.assertEqual(stream.getvalue().count("frame dropped"), 1)

    def test_get_logger_reuses_configured_package(self):
        """Test that a configured package logger is left as is."""
        package = setup_logger("logtest_pkg", level="DEBUG")
        handlers = list(package.handlers)

        child = get_logger("logtest_pkg.sensor.reader")
        self.assertEqual(child.handlers, [])
        self.assertEqual(package.handlers, handlers)
        self.assertEqual(package.level, logging.DEBUG)


if __name__ == "__main__":
    unittest.main()
