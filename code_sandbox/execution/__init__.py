"""
Secure code execution

Validates submissions, runs them either in an embedded QuickJS context
(ECMAScript family) or in a locked-down throwaway container (everything
else), and returns a uniform ExecutionResult.
"""

from .environments import EnvironmentRegistry, ExecutionEnvironment, create_default_registry
from .errors import (
    CodeValidationError,
    InfrastructureError,
    SandboxError,
    UnsupportedLanguageError,
    ValidationCode,
)
from .models import ExecutionRequest, ExecutionResult, ExecutionStatus, RunOutcome
from .service import SandboxService, build_sandbox_service, get_sandbox_service

__all__ = [
    "EnvironmentRegistry",
    "ExecutionEnvironment",
    "create_default_registry",
    "CodeValidationError",
    "InfrastructureError",
    "SandboxError",
    "UnsupportedLanguageError",
    "ValidationCode",
    "ExecutionRequest",
    "ExecutionResult",
    "ExecutionStatus",
    "RunOutcome",
    "SandboxService",
    "build_sandbox_service",
    "get_sandbox_service",
]
