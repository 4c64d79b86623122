"""Logging helpers.

Informational diagnostics are opt-in (``ENABLE_LOGGING``). Components get
the flag at construction and log through a ``ConditionalLogger`` instead of
checking the environment at each call site.
"""
from __future__ import annotations

import logging
import sys
from typing import Any

TRUTHY_VALUES = {"true", "on", "1", "yes"}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in TRUTHY_VALUES


class ConditionalLogger:
    """Wraps a logger; info/debug only pass through when enabled."""

    def __init__(self, logger: logging.Logger, enabled: bool = False) -> None:
        self.logger = logger
        self.enabled = enabled

    def debug(self, msg: str, *args: Any) -> None:
        if self.enabled:
            self.logger.debug(msg, *args)

    def info(self, msg: str, *args: Any) -> None:
        if self.enabled:
            self.logger.info(msg, *args)

    def warning(self, msg: str, *args: Any) -> None:
        self.logger.warning(msg, *args)

    def error(self, msg: str, *args: Any) -> None:
        self.logger.error(msg, *args)


def get_logger(name: str, enabled: bool = False) -> ConditionalLogger:
    return ConditionalLogger(logging.getLogger(name), enabled)


def configure_logging(enabled: bool, stream=None) -> None:
    """Install a stderr handler: INFO when enabled, ERROR otherwise."""
    root = logging.getLogger("logid")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(logging.INFO if enabled else logging.ERROR)
    root.propagate = False


def truncate(text: str, limit: int = 500) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"


def scrub(text: str, *secrets: str) -> str:
    """Remove secret values from text before it is logged."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, "[REDACTED]")
    return text
