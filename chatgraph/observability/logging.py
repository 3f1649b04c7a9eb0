"""
Structured logging with per-run trace context.

The executor sets `run_id` and `workflow_id` when a run starts and updates
`node_id` before every dispatch. Every `logger.info(...)` issued while the run
is in flight, including inside capability adapters, picks those fields up
without any id being passed around.

Concurrent runs each live in their own asyncio task, and therefore in their
own copy of the context, so their fields never mix.
"""

import json
import logging
import os
import re
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

trace_context: ContextVar[dict[str, Any] | None] = ContextVar("chatgraph_trace", default=None)

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

EXTRA_FIELDS = ("event", "latency_ms", "tokens_used", "node_id", "model")

THIRD_PARTY_LOGGERS = ("LiteLLM", "httpcore", "httpx", "openai")


def strip_ansi_codes(text: str) -> str:
    return ANSI_ESCAPE_PATTERN.sub("", text)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: standard fields, trace context, then known extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": strip_ansi_codes(record.getMessage()),
        }
        entry.update(trace_context.get() or {})

        for name in EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is None:
                continue
            entry[name] = strip_ansi_codes(value) if isinstance(value, str) else value

        if record.exc_info:
            entry["exception"] = strip_ansi_codes(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Coloured level, a short run/node prefix, then the message."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        context = trace_context.get() or {}
        prefix_parts = []
        if context.get("run_id"):
            prefix_parts.append(f"run:{str(context['run_id'])[:8]}")
        if context.get("workflow_id"):
            prefix_parts.append(f"wf:{context['workflow_id']}")
        if context.get("node_id"):
            prefix_parts.append(f"node:{context['node_id']}")
        context_prefix = f"[{' | '.join(prefix_parts)}] " if prefix_parts else ""

        color = self.COLORS.get(record.levelname, "")
        level = f"{record.levelname:<8}"
        event = getattr(record, "event", None)
        suffix = f" [{event}]" if event is not None else ""

        text = f"{color}[{level}]{self.RESET} {context_prefix}{record.getMessage()}{suffix}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def configure_logging(level: str = "INFO", format: str = "auto") -> None:
    """
    Install a single root handler. Call once, at process start.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json", "human", or "auto" (JSON when LOG_FORMAT=json or
            ENV=production, human otherwise)

    Example:
        configure_logging(level="DEBUG", format="human")
    """
    if format == "auto":
        log_format_env = os.getenv("LOG_FORMAT", "").lower()
        env = os.getenv("ENV", "development").lower()
        format = "json" if log_format_env == "json" or env == "production" else "human"

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter()
        _disable_third_party_colors()
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Library loggers with their own handlers would bypass the JSON formatter
    if format == "json":
        for logger_name in THIRD_PARTY_LOGGERS:
            library_logger = logging.getLogger(logger_name)
            library_logger.handlers.clear()
            library_logger.propagate = True


def _disable_third_party_colors() -> None:
    os.environ["NO_COLOR"] = "1"
    os.environ["FORCE_COLOR"] = "0"

    import litellm

    litellm.suppress_debug_info = True


def set_trace_context(**kwargs: Any) -> None:
    """
    Merge fields into the current trace context.

    Example:
        set_trace_context(run_id=run_id, workflow_id="sales_assistant")
        set_trace_context(node_id="nlp_processor")
    """
    current = trace_context.get() or {}
    trace_context.set({**current, **kwargs})


def get_trace_context() -> dict[str, Any]:
    """A copy of the current trace context (empty when no run is active)."""
    return dict(trace_context.get() or {})


def clear_trace_context() -> None:
    trace_context.set(None)
