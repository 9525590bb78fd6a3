# price_compare/config/logging_config.py

"""Logging for price comparison runs.

A comparison fans out to several marketplaces at once, so the interesting
record is the interleaving: which transport each source ended up on, how
many cards each extraction strategy yielded, and why the matcher threw a
listing away.  Each run therefore gets its own
``logs/run_YYYYMMDD_HHMMSS.log`` at DEBUG, opened with a header that
records the sources and transport settings in force.  Only the newest
``Settings.LOG_RETENTION`` run logs are kept.

stderr gets ``Settings.CONSOLE_LOG_LEVEL`` (``LOG_LEVEL``, WARNING by
default); stdout stays reserved for the CLI's JSON.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from price_compare.config.settings import Settings

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | "
    "%(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_level() -> int:
    level = logging.getLevelName(Settings.CONSOLE_LOG_LEVEL)
    return level if isinstance(level, int) else logging.WARNING


def prune_run_logs(logs_dir: Path, keep: int) -> list[Path]:
    """Delete all but the newest *keep* run logs; return what was removed."""
    # Timestamped names sort chronologically
    runs = sorted(logs_dir.glob("run_*.log"))
    stale = runs[:-keep] if keep > 0 else runs
    for path in stale:
        path.unlink(missing_ok=True)
    return stale


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Attach the per-run file and stderr handlers to ``price_compare``.

    Safe to call more than once; later calls keep the existing handlers.
    Returns the path of this run's log file.
    """
    target_dir: Path = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / f"run_{datetime.now():%Y%m%d_%H%M%S}.log"

    root_logger = logging.getLogger("price_compare")
    root_logger.setLevel(logging.DEBUG)
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(_console_level())
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    removed = prune_run_logs(target_dir, Settings.LOG_RETENTION)
    root_logger.info(
        "Run log %s (sources=%s, headless=%s, retries=%d, timeout=%ds, "
        "pruned %d old logs)",
        log_file.name,
        ",".join(s["id"] for s in Settings.AVAILABLE_SOURCES),
        Settings.BROWSER_HEADLESS,
        Settings.MAX_RETRIES,
        Settings.REQUEST_TIMEOUT,
        len(removed),
    )
    return log_file
