"""
Logging Configuration - Logging Setup and Configuration

Configures the root logger once at startup: a stdout handler (unless a
supervisor already captures output) and an optional size-rotated log file.
Every other module only calls logging.getLogger(__name__).

Files that USE this module:
- nisabwatch.app (setup_logging function for logging initialization)

Files that this module USES:
- None (pure configuration module)
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "nisabwatch.log"

# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("httpx", "urllib3")


def _log_file_path(log_file: Optional[Union[str, Path]], log_dir: Optional[Union[str, Path]]) -> Optional[Path]:
    """log_dir wins over log_file; the directory is created when missing."""
    if log_dir:
        path = Path(log_dir) / LOG_FILE_NAME
    elif log_file:
        path = Path(log_file)
    else:
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(
    level=logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    log_dir: Optional[Union[str, Path]] = None,
    log_stdout: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> None:
    """
    Configure application-wide logging settings.

    Args:
        level: Logging level (default: logging.INFO)
        log_file: Optional path to a log file
        log_dir: Optional directory for log files; the file is named nisabwatch.log
        log_stdout: Log to stdout (turn off under systemd/supervisor)
        max_bytes: Size of one log file before rotation (default: 10MB)
        backup_count: Rotated files to keep (default: 5)
    """
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    file_path = _log_file_path(log_file, log_dir)

    handlers: List[logging.Handler] = []
    if log_stdout or file_path is None:
        handlers.append(logging.StreamHandler(sys.stdout))
    if file_path is not None:
        handlers.append(RotatingFileHandler(
            file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        ))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: %s, level=%s",
        f"file={file_path}" if file_path else "stdout",
        logging.getLevelName(level),
    )
