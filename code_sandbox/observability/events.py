"""
Execution Event System

Structured lifecycle events for code executions. Events are handed to
registered sinks (the surrounding service wires its telemetry pipeline in
here) and mirrored to the log. Source code is never part of an event; the
code hash is used for correlation instead.
"""

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventSink = Callable[[Dict[str, Any]], None]


class ExecutionEventType(str, Enum):
    """Execution event types"""
    EXECUTION_ACCEPTED = "execution.accepted"
    EXECUTION_REJECTED = "execution.rejected"
    EXECUTION_COMPLETED = "execution.completed"
    EXECUTION_FAILED = "execution.failed"


class ExecutionEventEmitter:
    """
    Fans execution events out to sinks.

    Sinks are called synchronously from whichever thread emits; a failing
    sink is logged and skipped so telemetry problems never affect results.
    """

    def __init__(self, sinks: Optional[List[EventSink]] = None):
        self._sinks: List[EventSink] = list(sinks or [])
        self._lock = threading.Lock()

    def add_sink(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def emit(
        self,
        execution_id: str,
        event_type: ExecutionEventType,
        *,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        language: Optional[str] = None,
        code_hash: Optional[str] = None,
        status: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "execution_id": execution_id,
            "event_type": event_type.value,
            "user_id": user_id,
            "session_id": session_id,
            "language": language,
            "code_hash": code_hash,
            "status": status,
            "execution_time_ms": execution_time_ms,
            "payload": payload or {},
        }

        logger.info(
            f"Event: {event_type.value} for execution {execution_id[:8]}... "
            f"(language: {language}, status: {status})"
        )

        with self._lock:
            sinks = list(self._sinks)

        for sink in sinks:
            try:
                sink(event)
            except Exception as e:
                logger.error(f"Event sink failed for {event_type.value}: {e}")

        return event
