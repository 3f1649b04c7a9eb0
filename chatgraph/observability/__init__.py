"""
Logging for workflow runs.

- Per-run trace context (run id, workflow id, current node) carried in a ContextVar
- JSON lines for production, coloured text for development
"""

from chatgraph.observability.logging import (
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)

__all__ = [
    "configure_logging",
    "get_trace_context",
    "set_trace_context",
    "clear_trace_context",
]
