"""Logging for the recipe matching engine.

One package-wide logger, configured from the environment:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text or json (default: text)

Records may carry context extras (``extra={"session_key": ...}``); the
fields listed in CONTEXT_FIELDS are rendered by both formatters.
"""

import json
import logging
import os
import sys
from typing import Any

# Extras rendered when present on a record, in this order
CONTEXT_FIELDS = ("session_key", "recipe_id", "attempt")


def context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(context_of(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class RichTextFormatter(logging.Formatter):
    """Colored single-line text with a level icon, for terminals.

    Context extras are shown as ``[session_key recipe_id ...]`` before the
    message.
    """

    RESET = "\033[0m"
    # level -> (ANSI color, icon)
    LEVEL_STYLES = {
        "DEBUG": ("\033[36m", "🔍"),
        "INFO": ("\033[32m", "ℹ️"),
        "WARNING": ("\033[33m", "⚠️"),
        "ERROR": ("\033[31m", "❌"),
        "CRITICAL": ("\033[35m", "🔥"),
    }

    def format(self, record: logging.LogRecord) -> str:
        color, icon = self.LEVEL_STYLES.get(record.levelname, (self.RESET, ""))
        context = context_of(record)
        prefix = f"[{' '.join(str(v) for v in context.values())}] " if context else ""

        line = (
            f"{color}{icon} {self.formatTime(record, '%Y-%m-%d %H:%M:%S')} "
            f"{record.levelname:<8} {record.name:<16} {prefix}{record.getMessage()}{self.RESET}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Return the named logger, attaching a stdout handler on first use.

    Level and format are read from LOG_LEVEL / LOG_TYPE at that moment;
    an unknown level falls back to INFO.
    """
    instance = logging.getLogger(name)
    if instance.handlers:
        return instance

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    use_json = os.getenv("LOG_TYPE", "text").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if use_json else RichTextFormatter())

    instance.setLevel(level)
    instance.addHandler(handler)
    return instance


logger = get_logger("recipe_matcher")

# Gemini and aiohttp are chatty at INFO
for _noisy in ("google.genai", "aiohttp"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
