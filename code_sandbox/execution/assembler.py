"""
Result assembly shared by both execution paths.
"""

import hashlib
import time
from datetime import datetime, timezone
from typing import Callable

from code_sandbox.execution.models import ExecutionRequest, ExecutionResult, RunOutcome


def compute_code_hash(source_code: str) -> str:
    """SHA-256 hex digest of the submitted source, used for correlation instead of the source."""
    return hashlib.sha256(source_code.encode("utf-8")).hexdigest()


class ResultAssembler:
    """
    Builds the canonical ExecutionResult.

    execution_time_ms covers acceptance to result construction, measured on
    the injected monotonic clock.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock

    def now(self) -> float:
        return self.clock()

    def assemble(
        self,
        execution_id: str,
        request: ExecutionRequest,
        outcome: RunOutcome,
        accepted_at: float,
    ) -> ExecutionResult:
        elapsed_ms = int(round((self.clock() - accepted_at) * 1000))
        return ExecutionResult(
            id=execution_id,
            status=outcome.status,
            stdout=outcome.stdout or None,
            stderr=outcome.stderr or None,
            execution_time_ms=max(elapsed_ms, 0),
            memory_used_bytes=max(outcome.memory_used_bytes, 0),
            timestamp=datetime.now(timezone.utc),
            language=request.language,
            code_hash=compute_code_hash(request.source_code),
        )

    def failure(
        self,
        execution_id: str,
        request: ExecutionRequest,
        message: str,
        accepted_at: float,
    ) -> ExecutionResult:
        outcome = RunOutcome.failure(message)
        return self.assemble(execution_id, request, outcome, accepted_at)
