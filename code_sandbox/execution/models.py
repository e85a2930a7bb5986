"""
Core data models for code execution requests and results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    MEMORY_EXCEEDED = "memory_exceeded"


class ExecutionRequest(BaseModel):
    """
    A submission accepted for execution. Immutable once constructed.

    Size and ceiling checks live in RequestValidator so that every rejection
    surfaces with a specific ValidationCode.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Authenticated requester id")
    language: str = Field(..., min_length=1)
    source_code: str
    stdin: Optional[str] = None
    timeout_ms: Optional[int] = Field(None, gt=0)
    memory_limit_mb: Optional[int] = Field(None, gt=0)
    session_id: Optional[str] = None


class RunOutcome(BaseModel):
    """What a backend observed while running the code, before assembly."""
    status: ExecutionStatus
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    memory_used_bytes: int = 0
    duration_ms: float = 0.0

    @classmethod
    def failure(cls, message: str, duration_ms: float = 0.0) -> "RunOutcome":
        return cls(
            status=ExecutionStatus.ERROR,
            stderr=message,
            exit_code=-1,
            duration_ms=duration_ms,
        )


class ExecutionResult(BaseModel):
    """Canonical, immutable result returned to callers."""
    model_config = ConfigDict(frozen=True)

    id: str
    status: ExecutionStatus
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    execution_time_ms: int = Field(..., ge=0)
    memory_used_bytes: int = Field(..., ge=0)
    timestamp: datetime
    language: str
    code_hash: str
