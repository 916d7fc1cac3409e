"""Observability infrastructure: structured logging and optional tracing.

setup_logging:
    Console + rotating file logging with run/job context.

setup_tracing / trace_operation:
    Optional Logfire spans around section refreshes.
"""

from observability.logging import setup_logging, set_run_context, clear_context
from observability.tracing import setup_tracing, trace_operation, TracingContext

__all__ = [
    "setup_logging",
    "set_run_context",
    "clear_context",
    "setup_tracing",
    "trace_operation",
    "TracingContext",
]
