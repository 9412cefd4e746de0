# util/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from config.settings import settings

# Optional: capture warnings.* into logging
logging.captureWarnings(True)

_TEXT_FMT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
_DATE_FMT = "%Y-%m-%dT%H:%M:%S%z"

# Loggers that mirror external tool output line by line.
_TOOL_LOGGERS = ("core.process_runner",)


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[37m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Colour a copy so file handlers sharing the record keep plain levelnames.
        tinted = logging.makeLogRecord(record.__dict__)
        lvl = record.levelname
        tinted.levelname = f"{self.COLORS.get(lvl, self.RESET)}{lvl}{self.RESET}"
        return super().format(tinted)


def _level(name: str | None, default: int = logging.INFO) -> int:
    return getattr(logging, (name or "").upper(), default)


def _console_handler(level: int) -> logging.Handler:
    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    tty = getattr(sys.stdout, "isatty", lambda: False)()
    ch.setFormatter(
        ColoredFormatter(_TEXT_FMT, datefmt=_DATE_FMT)
        if tty
        else logging.Formatter(_TEXT_FMT, datefmt=_DATE_FMT)
    )
    return ch


def _file_handler(level: int) -> logging.Handler:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    fh = RotatingFileHandler(
        os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(_TEXT_FMT, datefmt=_DATE_FMT))
    return fh


def init_logger() -> logging.Logger:
    """
    Idempotent logger init:
    - Always logs to stdout, coloured only when stdout is a terminal.
    - Writes to LOG_DIR/LOG_FILE_NAME (size-rotated) only when LOG_TO_FILE is True.
    - Respects LOG_LEVEL; TOOL_LOG_LEVEL separately gates mirrored nargo/bb output.
    """
    root = logging.getLogger()
    if getattr(root, "_noirbackend_inited", False):
        return logging.getLogger(settings.LOGGER_NAME)

    level = _level(settings.LOG_LEVEL)
    root.setLevel(level)

    # Clear any default handlers to avoid duplicates
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_console_handler(level))
    if settings.LOG_TO_FILE:
        root.addHandler(_file_handler(level))

    for name in _TOOL_LOGGERS:
        logging.getLogger(name).setLevel(_level(settings.TOOL_LOG_LEVEL, level))

    # Quiet noisy libs
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("python_multipart").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)

    root._noirbackend_inited = True  # mark as initialized
    logger = logging.getLogger(settings.LOGGER_NAME)
    logger.debug("Logger initialized", extra={"component": "bootstrap"})
    return logger
