import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from planarmech.config import LOGGING

SESSION_START_BANNER = "―" * 20 + " NEW SESSION STARTED " + "―" * 20

CONSOLE_FORMAT_STR = "%(message)s"
FILE_FORMAT_STR = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def _remove_handlers(logger: logging.Logger, *, predicate) -> None:
    """Remove and close all handlers on `logger` for which `predicate(handler)` is True."""
    for h in list(logger.handlers):
        if predicate(h):
            logger.removeHandler(h)
            h.close()


def _make_rotating_handler(path: Path, level: int, fmt: logging.Formatter) -> RotatingFileHandler:
    """Create a RotatingFileHandler writing to `path` at `level` with `fmt`."""
    fh = RotatingFileHandler(
        filename=str(path),
        maxBytes=LOGGING.max_bytes,
        backupCount=LOGGING.backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    return fh


def _console_handler_pred(h: logging.Handler) -> bool:
    if isinstance(h, RichHandler):
        return True
    return isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)


def enable_logging_handlers(
    console_level: Optional[int] = None,
    file_level: Optional[int] = None,
    file: Optional[str | Path] = None,
) -> logging.Logger:
    """Attach a Rich console handler, and optionally a rotating file handler,
    to the `planarmech` package logger.

    Calling again replaces the handlers installed by a previous call.
    Unset arguments fall back to the `logging` section of the config.
    """
    console_lvl: int = LOGGING.console_level if console_level is None else console_level
    file_lvl: int = LOGGING.file_level if file_level is None else file_level
    log_file = file or LOGGING.file

    pkg_logger = logging.getLogger("planarmech")

    _remove_handlers(pkg_logger, predicate=_console_handler_pred)
    console_h = RichHandler(level=console_lvl, rich_tracebacks=LOGGING.rich_tracebacks)
    console_h.setFormatter(logging.Formatter(CONSOLE_FORMAT_STR))
    pkg_logger.addHandler(console_h)
    levels = [console_lvl]

    if log_file:
        path = Path(log_file).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        _remove_handlers(pkg_logger, predicate=lambda h: isinstance(h, RotatingFileHandler))
        pkg_logger.addHandler(
            _make_rotating_handler(path, file_lvl, logging.Formatter(FILE_FORMAT_STR))
        )
        levels.append(file_lvl)
        pkg_logger.info("File logging enabled → %s", path)

    pkg_logger.setLevel(min(levels))
    pkg_logger.debug(SESSION_START_BANNER)

    logging.captureWarnings(True)
    return pkg_logger
