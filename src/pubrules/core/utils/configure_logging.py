# src/pubrules/core/utils/configure_logging.py
import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Union

from tqdm import tqdm

LevelLike = Union[str, int, None]

CONSOLE_FORMAT = "%(levelname)-7s [%(name)s] %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s %(name)s:%(lineno)d] %(message)s"


class LogWithTqdm(logging.Handler):
    """Writes records through tqdm.write() so they do not break a running progress bar."""

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=sys.stderr)
        except Exception:
            self.handleError(record)


def to_level(level: LevelLike, fallback: int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), fallback)
    return level if level is not None else fallback


def configure_logger(
        general_level: LevelLike = "WARNING",
        module_specific_levels: Optional[Dict[str, LevelLike]] = None,
        silenced_loggers: Optional[Dict[str, LevelLike]] = None,
        log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Installs the console handler, and optionally a debug log file, on the
    root logger.

    Rules run on worker threads as well as on the event loop, so the file
    format records the thread name.
    """
    console_level = to_level(general_level, logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG if log_file else console_level)

    console = LogWithTqdm()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(to_level(level, logging.INFO))

    # Third-party chatter
    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(to_level(level, logging.CRITICAL))

    return root_logger
