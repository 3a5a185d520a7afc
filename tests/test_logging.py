import logging
import tempfile
import unittest
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from asset_mirror.config.models import LoggingSettings
from asset_mirror.logging import init_logging


class InitLoggingTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        root = logging.getLogger()
        self._saved = (root.level, list(root.handlers), logging.getLogger("aiohttp.access").level)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        level, handlers, access_level = self._saved
        root.setLevel(level)
        for handler in handlers:
            root.addHandler(handler)
        logging.getLogger("aiohttp.access").setLevel(access_level)
        self._tmp.cleanup()

    def test_file_handler_is_added_when_path_is_set(self) -> None:
        log_path = Path(self._tmp.name) / "logs" / "asset-mirror.log"
        settings = LoggingSettings.model_validate({"level": "debug", "file": {"path": str(log_path)}})

        init_logging(settings)

        root = logging.getLogger()
        self.assertEqual(root.level, logging.DEBUG)
        self.assertEqual(len(root.handlers), 2)
        self.assertTrue(any(isinstance(h, TimedRotatingFileHandler) for h in root.handlers))
        self.assertTrue(log_path.parent.is_dir())
        self.assertEqual(logging.getLogger("aiohttp.access").level, logging.WARNING)

    def test_stream_only_without_file_path(self) -> None:
        init_logging(LoggingSettings(level="ERROR"))

        root = logging.getLogger()
        self.assertEqual(len(root.handlers), 1)
        self.assertEqual(logging.getLogger("aiohttp.access").level, logging.ERROR)

    def test_unknown_level_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            init_logging(LoggingSettings(level="LOUD"))


if __name__ == "__main__":
    unittest.main()
