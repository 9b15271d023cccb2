import copy
import logging
import logging.config
import os
from datetime import datetime
from logging import Logger

from pytz import timezone

APP_LOGGER_NAME = "persona_ai_bridge"

_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
    "blue":    "\033[34m",
    "white":   "\033[37m",
}
_LEVEL_PREFIXES: dict[int, str] = {
    logging.WARNING: "⚠️ ",
    logging.ERROR: "⛔ ",
    logging.CRITICAL: "⛔ ",
}


def get_log_level() -> int:
    return logging.DEBUG if os.getenv("LOG_LEVEL", "info").lower() == "debug" else logging.INFO


class PdfParserFilter(logging.Filter):
    """Drop pypdf parser chatter below ERROR.

    Slightly broken uploads make pypdf log one warning per recovered object.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith("pypdf"):
            return record.levelno >= logging.ERROR
        return True


class ZonedFormatter(logging.Formatter):
    """Renders ``asctime`` in a pytz time zone and prefixes warnings and errors."""

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # third-party record with mismatched %-args
            message = str(record.msg)
        # the record is shared by every handler, only the copy gets the prefix
        record = copy.copy(record)
        record.msg = _LEVEL_PREFIXES.get(record.levelno, "") + message
        record.args = ()
        return super().format(record)


class ConsoleFormatter(ZonedFormatter):
    """Wraps the line in the ANSI color named by ``record.color``, if any."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi and line else line


class ColorLogger:
    """Logger wrapper whose log methods take an optional ``color=`` keyword.

    Usage::

        logger.info("Ingested item %s into %s", item_id, scope.label)
        logger.info("API ready.", color="green")

    Only the console handler renders the color; the log file stays plain.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        # keep file/line of the caller, not of this wrapper
        kwargs.setdefault("stacklevel", 2)
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        kwargs.setdefault("stacklevel", 3)
        self.log(logging.ERROR, msg, *args, **kwargs)

    def __getattr__(self, name):
        # setLevel, handlers, isEnabledFor, ...
        return getattr(self._logger, name)


def setup_logging(name: str = APP_LOGGER_NAME) -> ColorLogger:
    """Configure console and file logging for the whole process.

    Reads ``ROOT_DIR`` (log file goes to ``{ROOT_DIR}/logs/app.log``),
    ``TIMEZONE`` and ``LOG_LEVEL``.

    Returns:
        ColorLogger: The application logger.
    """
    root_dir = os.getenv("ROOT_DIR") or os.getcwd()
    log_dir = os.path.join(root_dir, "logs")
    os.makedirs(log_dir, exist_ok=True)
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    level = get_log_level()

    line_format = "%(asctime)s - %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "pdf_parser": {"()": PdfParserFilter},
        },
        "formatters": {
            "plain": {"()": ZonedFormatter, "format": line_format, "datefmt": date_format, "tz_name": tz_name},
            "console": {"()": ConsoleFormatter, "format": line_format, "datefmt": date_format, "tz_name": tz_name},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "filters": ["pdf_parser"],
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "plain",
                "filters": ["pdf_parser"],
                "level": level,
                "filename": os.path.join(log_dir, "app.log"),
                "encoding": "utf-8",
            },
        },
        "root": {"handlers": ["console", "file"], "level": level},
    })

    # httpx logs one line per request
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(name))
