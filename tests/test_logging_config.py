import logging
import unittest

import structlog

from logging_config import setup_logging


class SetupLoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        structlog.reset_defaults()

    def test_json_renderer(self) -> None:
        setup_logging(level="debug", fmt="json")
        processors = structlog.get_config()["processors"]
        self.assertIsInstance(processors[-1], structlog.processors.JSONRenderer)
        self.assertEqual(logging.getLogger("urllib3").level, logging.WARNING)

    def test_console_renderer_by_default(self) -> None:
        setup_logging(fmt="console")
        processors = structlog.get_config()["processors"]
        self.assertIsInstance(processors[-1], structlog.dev.ConsoleRenderer)


if __name__ == "__main__":
    unittest.main()
