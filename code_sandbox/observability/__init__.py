"""
Observability module for tracing and execution lifecycle events.
"""

from .tracing import get_tracer, configure_tracing, is_tracing_enabled
from .events import ExecutionEventEmitter, ExecutionEventType

__all__ = [
    "get_tracer",
    "configure_tracing",
    "is_tracing_enabled",
    "ExecutionEventEmitter",
    "ExecutionEventType",
]
