"""
Logging infrastructure for GrantWatch.

Provides:
- JSON lines for the log file
- Rich console output for the terminal
- Redaction of the portal password wherever it might leak into a message
- Loggers that carry portal/page context into every record
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

import orjson

if TYPE_CHECKING:
    from rich.console import Console


ROOT_LOGGER = "grantwatch"

# Record attributes copied into JSON lines when present
CONTEXT_FIELDS = ("portal", "page", "phase", "url", "record")

REDACTED = "********"

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}


# =============================================================================
# Filters and Formatters
# =============================================================================


class SecretRedactionFilter(logging.Filter):
    """Replace known secret values in log messages."""

    def __init__(self, secrets: Iterable[str] = ()):
        super().__init__()
        self.secrets = [secret for secret in secrets if secret]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True

        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, REDACTED)
        if redacted != message:
            record.msg, record.args = redacted, None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with run context as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(entry, default=str).decode("utf-8")


# =============================================================================
# Rich Console Handler
# =============================================================================


class RichConsoleHandler(logging.Handler):
    """Colour by level, prefixed with [portal] and the listing page."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            prefix = ""
            if getattr(record, "portal", None):
                prefix += f"[cyan][{record.portal}][/cyan] "
            if getattr(record, "page", None):
                prefix += f"[magenta]p{record.page}[/magenta] "
            if prefix:
                self.console.print(prefix, end="", highlight=False)

            # Messages quote page text, never treat them as markup
            self.console.print(
                self.format(record),
                style=LEVEL_STYLES.get(record.levelno, "default"),
                markup=False,
                highlight=False,
            )
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
    secrets: Iterable[str] = (),
) -> logging.Logger:
    """Configure the grantwatch logger tree.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file that receives every level
        json_format: JSON lines in the log file instead of plain text
        rich_console: Rich console output instead of a plain stream
        secrets: Values masked in every message (the portal password)

    Returns:
        The grantwatch root logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else getattr(logging, level.upper()))
    logger.handlers.clear()
    # Handler-level so records propagated from child loggers are covered
    redaction = SecretRedactionFilter(secrets)

    if rich_console:
        console_handler: logging.Handler = RichConsoleHandler()
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(redaction)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(redaction)
        file_handler.setFormatter(
            JSONFormatter()
            if json_format
            else logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger under the grantwatch tree ("portals.pagination" -> "grantwatch.portals.pagination")."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


# =============================================================================
# Contextual Logging Adapter
# =============================================================================


class ContextualLogger(logging.LoggerAdapter):
    """Adds run context (portal, page, phase) to every record.

    Context values that are None are left off the record.
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        super().__init__(logger, {key: value for key, value in context.items() if value is not None})

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_contextual_logger(name: str | None = None, **context: Any) -> ContextualLogger:
    """Contextual logger, e.g. get_contextual_logger("portals.pagination", portal="idox_bca", page=3)."""
    return ContextualLogger(get_logger(name), **context)
