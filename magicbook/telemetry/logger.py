"""Structured session logging utilities.

Responsibilities:
- Emit concise, deterministic event logs for story orchestration activity.
- Keep page text, prompts, and credentials out of log lines.
"""

from __future__ import annotations

from enum import Enum
import sys
from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value.value if isinstance(value, Enum) else value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


class SessionLogger:
    """Emit deterministic event logs for orchestrator, playback, and chat activity."""

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        """Initialize logger sink and configure deterministic formatting."""

        self._sink = sink or sys.stderr
        _loguru_logger.remove()
        _loguru_logger.add(self._sink, format="{message}", level=level, colorize=False)

    def _emit(self, level: str, event: str, component: str, **context: object) -> None:
        """Emit one structured session log line."""

        line = f"[story] level={level} component={component} event={event}{_format_context(context)}"
        _loguru_logger.log(level, line)

    def log_event(self, component: str, event: str, **context: object) -> None:
        """Emit an informational state-transition event."""

        self._emit("INFO", event, component, **context)

    def log_debug(self, component: str, event: str, **context: object) -> None:
        """Emit a low-level diagnostic event."""

        self._emit("DEBUG", event, component, **context)

    def log_warning(self, component: str, event: str, **context: object) -> None:
        """Emit a recoverable-anomaly event."""

        self._emit("WARNING", event, component, **context)

    def log_failure(self, component: str, event: str, error_type: str, **context: object) -> None:
        """Emit a failure event without sensitive payload details."""

        self._emit("ERROR", event, component, error_type=error_type, **context)
