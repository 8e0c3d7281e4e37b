"""
Logging setup for ThreadLens.

Every module logs under the "threadlens" root, either through
logging.getLogger(__name__) or through get_logger(component). The
components are extraction, analysis, model, taxonomy, insights and
pipeline. setup_logging() attaches console output and, when a log
directory is given, one file for everything, one for errors and one
per noisy component (model traffic and analysis).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from threadlens.utils.exceptions import ThreadLensError

ROOT_LOGGER = "threadlens"

# Components that also get a file of their own
COMPONENT_FILES = {
    "model": "model.log",
    "analysis": "analysis.log",
}
MAIN_LOG_FILE = "threadlens.log"
ERROR_LOG_FILE = "errors.log"

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Attributes every LogRecord has; anything else arrived through extra=
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


def component_logger_name(component: str) -> str:
    """Dotted logger name for a component, e.g. threadlens.model."""
    if component in ("", "main", ROOT_LOGGER):
        return ROOT_LOGGER
    return f"{ROOT_LOGGER}.{component}"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Context attached with extra= or a LoggerAdapter (capsule_id,
    organization_id, ...) becomes top-level keys. A ThreadLensError in
    exc_info is also emitted in its to_dict() form so that its details
    stay queryable.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
            error = record.exc_info[1]
            if isinstance(error, ThreadLensError):
                payload["error"] = error.to_dict()

        return json.dumps(payload, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name on a TTY."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Records are shared between handlers; color a copy only
        colored = logging.makeLogRecord(vars(record))
        color = self.COLORS.get(record.levelname)
        if color:
            colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    json_format: bool = False,
    console_output: bool = True,
) -> logging.Logger:
    """
    Configure the threadlens logger tree.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_dir: Directory for log files; no files are written if None
        json_format: Emit JSON lines instead of text
        console_output: Also log to stdout

    Returns:
        The configured root "threadlens" logger.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.propagate = False

    text_formatter = logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
    file_formatter: logging.Formatter = JSONFormatter() if json_format else text_formatter

    if console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(numeric_level)
        if json_format:
            console.setFormatter(JSONFormatter())
        elif sys.stdout.isatty():
            console.setFormatter(ColoredFormatter(TEXT_FORMAT, datefmt=DATE_FORMAT))
        else:
            console.setFormatter(text_formatter)
        root.addHandler(console)

    for component in COMPONENT_FILES:
        logging.getLogger(component_logger_name(component)).handlers.clear()

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        root.addHandler(_file_handler(log_dir / MAIN_LOG_FILE, numeric_level, file_formatter))
        root.addHandler(_file_handler(log_dir / ERROR_LOG_FILE, logging.ERROR, file_formatter))

        for component, filename in COMPONENT_FILES.items():
            logging.getLogger(component_logger_name(component)).addHandler(
                _file_handler(log_dir / filename, numeric_level, file_formatter)
            )

    return root


def get_logger(component: str = "main") -> logging.Logger:
    """
    Logger for a component.

    Args:
        component: extraction, analysis, model, taxonomy, insights, pipeline,
                   "main" for the root, or any other name, which is
                   placed under "threadlens."
    """
    return logging.getLogger(component_logger_name(component))


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adds fixed context (capsule_id, organization_id, ...) to every record.

    The context is passed as extra fields for JSON output and prefixed
    to the message for text output.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        if self.extra:
            prefix = " ".join(f"[{key}={value}]" for key, value in self.extra.items())
            msg = f"{prefix} {msg}"
        return msg, kwargs


def get_contextual_logger(component: str = "main", **context: Any) -> LoggerAdapter:
    """
    Logger for a component with context attached to every record.

    Example:
        log = get_contextual_logger("pipeline", capsule_id=capsule.capsule_id)
        log.info("Analysis started")
    """
    return LoggerAdapter(get_logger(component), context)


def setup_logging_from_settings() -> logging.Logger:
    """Configure logging from the LOG_* settings."""
    # config imports the models package; imported here so this module
    # stays importable on its own
    from threadlens.utils.config import get_settings

    settings = get_settings()
    return setup_logging(
        level=settings.logging.level.value,
        log_dir=settings.logging.dir,
        json_format=settings.logging.json_format,
    )
