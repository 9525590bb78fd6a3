# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from price_compare.config.logging_config import prune_run_logs, setup_logging
from price_compare.config.settings import Settings


def _reset_logger() -> None:
    root_logger = logging.getLogger("price_compare")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Clean up the price_compare logger before each test."""
        _reset_logger()
        self._tmp = tempfile.TemporaryDirectory()
        self.logs_dir = Path(self._tmp.name) / "logs"

    def tearDown(self) -> None:
        _reset_logger()
        self._tmp.cleanup()

    def test_setup_creates_log_file(self) -> None:
        """setup_logging returns a path that exists on disk."""
        log_path = setup_logging(self.logs_dir)
        self.assertTrue(log_path.exists())

    def test_log_file_naming_convention(self) -> None:
        """Log file name matches run_YYYYMMDD_HHMMSS.log format."""
        log_path = setup_logging(self.logs_dir)
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_log_file_inside_logs_dir(self) -> None:
        log_path = setup_logging(self.logs_dir)
        self.assertEqual(log_path.parent, self.logs_dir)

    def test_file_handler_level_debug(self) -> None:
        """File handler should be set to DEBUG level."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger("price_compare")
        file_handlers = [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(file_handlers), 1)
        self.assertEqual(file_handlers[0].level, logging.DEBUG)

    def test_console_handler_level_warning(self) -> None:
        """Console handler should be set to WARNING level."""
        with patch.object(Settings, "CONSOLE_LOG_LEVEL", "WARNING"):
            setup_logging(self.logs_dir)
        root_logger = logging.getLogger("price_compare")
        stream_handlers = [
            h
            for h in root_logger.handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(len(stream_handlers), 1)
        self.assertEqual(stream_handlers[0].level, logging.WARNING)

    def test_repeated_calls_no_duplicate_handlers(self) -> None:
        """Calling setup_logging twice does not duplicate handlers."""
        setup_logging(self.logs_dir)
        root_logger = logging.getLogger("price_compare")
        count_before = len(root_logger.handlers)
        setup_logging(self.logs_dir)
        self.assertEqual(count_before, len(root_logger.handlers))

    def test_child_loggers_reach_file(self) -> None:
        """Records from price_compare.* loggers land in the run log."""
        log_path = setup_logging(self.logs_dir)
        logging.getLogger("price_compare.filters").debug(
            "PRICE REJECTED marker"
        )
        for handler in logging.getLogger("price_compare").handlers:
            handler.flush()
        self.assertIn(
            "PRICE REJECTED marker",
            log_path.read_text(encoding="utf-8"),
        )

    def test_run_header_names_sources(self) -> None:
        log_path = setup_logging(self.logs_dir)
        for handler in logging.getLogger("price_compare").handlers:
            handler.flush()
        header = log_path.read_text(encoding="utf-8")
        self.assertIn("sources=amazon,flipkart,myntra", header)
        self.assertIn(f"retries={Settings.MAX_RETRIES}", header)

    def test_console_level_from_settings(self) -> None:
        with patch.object(Settings, "CONSOLE_LOG_LEVEL", "INFO"):
            setup_logging(self.logs_dir)
        console = [
            h
            for h in logging.getLogger("price_compare").handlers
            if not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(console[0].level, logging.INFO)

    def test_unknown_console_level_falls_back_to_warning(self) -> None:
        with patch.object(Settings, "CONSOLE_LOG_LEVEL", "CHATTY"):
            setup_logging(self.logs_dir)
        console = [
            h
            for h in logging.getLogger("price_compare").handlers
            if not isinstance(h, logging.FileHandler)
        ]
        self.assertEqual(console[0].level, logging.WARNING)

    def test_old_run_logs_pruned(self) -> None:
        self.logs_dir.mkdir(parents=True)
        for day in range(1, 6):
            (self.logs_dir / f"run_2026010{day}_120000.log").write_text("")
        (self.logs_dir / "notes.txt").write_text("")
        with patch.object(Settings, "LOG_RETENTION", 3):
            log_path = setup_logging(self.logs_dir)
        remaining = sorted(p.name for p in self.logs_dir.iterdir())
        self.assertEqual(
            remaining,
            [
                "notes.txt",
                "run_20260104_120000.log",
                "run_20260105_120000.log",
                log_path.name,
            ],
        )

    def test_prune_keeps_newest(self) -> None:
        self.logs_dir.mkdir(parents=True)
        names = [f"run_2026020{i}_000000.log" for i in range(1, 4)]
        for name in names:
            (self.logs_dir / name).write_text("")
        removed = prune_run_logs(self.logs_dir, 1)
        self.assertEqual([p.name for p in removed], names[:2])
        self.assertTrue((self.logs_dir / names[2]).exists())


if __name__ == "__main__":
    unittest.main()
