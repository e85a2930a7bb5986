"""
Error taxonomy for the execution sandbox.

Validation errors are raised to the caller before any resource is
allocated. Everything that goes wrong while user code runs is converted
into a structured ExecutionResult by the service instead of propagating.
"""

from enum import Enum
from typing import Optional


class ValidationCode(str, Enum):
    """Reasons a submission is rejected before execution."""
    EMPTY_CODE = "empty_code"
    CODE_TOO_LARGE = "code_too_large"
    TIMEOUT_TOO_LARGE = "timeout_too_large"
    MEMORY_LIMIT_TOO_HIGH = "memory_limit_too_high"
    DANGEROUS_PATTERN = "dangerous_pattern"


class SandboxError(Exception):
    """Base class for every error raised by the sandbox."""
    pass


class CodeValidationError(SandboxError):
    """
    Raised when a submission fails the pre-execution gate.
    """
    code: ValidationCode

    def __init__(self, message: str, code: Optional[ValidationCode] = None):
        if code is not None:
            self.code = code
        super().__init__(message)


class EmptyCodeError(CodeValidationError):
    code = ValidationCode.EMPTY_CODE


class CodeTooLargeError(CodeValidationError):
    code = ValidationCode.CODE_TOO_LARGE


class TimeoutTooLargeError(CodeValidationError):
    code = ValidationCode.TIMEOUT_TOO_LARGE


class MemoryLimitTooHighError(CodeValidationError):
    code = ValidationCode.MEMORY_LIMIT_TOO_HIGH


class DangerousPatternError(CodeValidationError):
    code = ValidationCode.DANGEROUS_PATTERN

    def __init__(self, risk_class: str, description: str):
        self.risk_class = risk_class
        self.description = description
        super().__init__(f"Code contains potentially dangerous operations ({risk_class}: {description})")


class UnsupportedLanguageError(SandboxError):
    """Raised when no execution environment is registered for a language."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class InfrastructureError(SandboxError):
    """
    The runtime could not create or start a container, or the working
    directory could not be prepared.
    """
    pass
