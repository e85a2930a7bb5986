"""
Request Validation - Pre-execution gate for code submissions.

Enforces size, timeout and memory ceilings and a lexical deny-list before
any working directory, container or interpreter is created. The deny-list
is a cheap early rejection only: it matches raw text, so equivalent code
written differently gets through. Containment comes from the container.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Pattern, Tuple

from code_sandbox.config import Settings, settings as default_settings
from code_sandbox.execution.errors import (
    CodeTooLargeError,
    DangerousPatternError,
    EmptyCodeError,
    MemoryLimitTooHighError,
    TimeoutTooLargeError,
)
from code_sandbox.execution.models import ExecutionRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DangerousPattern:
    risk_class: str
    regex: Pattern[str]
    description: str

    def matches(self, source: str) -> bool:
        return self.regex.search(source) is not None


def _pattern(risk_class: str, expression: str, description: str, flags: int = 0) -> DangerousPattern:
    return DangerousPattern(risk_class, re.compile(expression, flags), description)


DANGEROUS_PATTERNS: Tuple[DangerousPattern, ...] = (
    # Filesystem modules
    _pattern("filesystem", r"""require\s*\(\s*['"](?:node:)?fs(?:/promises)?['"]""", "Node.js fs module"),
    _pattern("filesystem", r"""\bimport\b[^;\n]*\bfrom\s*['"](?:node:)?fs(?:/promises)?['"]""", "Node.js fs module"),
    # Process spawning
    _pattern("process", r"""require\s*\(\s*['"](?:node:)?child_process['"]""", "Node.js child_process module"),
    _pattern("process", r"""\bimport\b[^;\n]*\bfrom\s*['"](?:node:)?child_process['"]""", "Node.js child_process module"),
    _pattern("process", r"^\s*import\s+(?:os|subprocess)\b", "Python os/subprocess module", re.MULTILINE),
    _pattern("process", r"^\s*from\s+(?:os|subprocess)\b[\w.]*\s+import\b", "Python os/subprocess module", re.MULTILINE),
    # Raw sockets
    _pattern("network", r"""require\s*\(\s*['"](?:node:)?net['"]""", "Node.js net module"),
    _pattern("network", r"^\s*import\s+socket\b", "Python socket module", re.MULTILINE),
    # Process termination
    _pattern("termination", r"\bSystem\s*\.\s*exit\b", "Java System.exit"),
    # Unrestricted system headers
    _pattern("system_header", r"#\s*include\s*<\s*(?:cstdlib|unistd\.h|sys/socket\.h)\s*>", "C/C++ system header"),
)


class RequestValidator:
    """
    Stateless gate applied to every ExecutionRequest.

    Rules are checked in a fixed order so the first violated ceiling is the
    one reported.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        patterns: Tuple[DangerousPattern, ...] = DANGEROUS_PATTERNS,
    ):
        self.settings = settings or default_settings
        self.patterns = patterns

    def validate(self, request: ExecutionRequest) -> None:
        """
        Accept the request or raise.

        Raises:
            EmptyCodeError: Source is empty after trimming
            CodeTooLargeError: Source exceeds MAX_CODE_LENGTH characters
            TimeoutTooLargeError: timeout_ms exceeds MAX_TIMEOUT_MS
            MemoryLimitTooHighError: memory_limit_mb exceeds MAX_MEMORY_LIMIT_MB
            DangerousPatternError: Source matches a deny-listed pattern
        """
        code = request.source_code

        if not code or not code.strip():
            raise EmptyCodeError("Code cannot be empty")

        if len(code) > self.settings.MAX_CODE_LENGTH:
            raise CodeTooLargeError(
                f"Code too long (max {self.settings.MAX_CODE_LENGTH:,} characters)"
            )

        if request.timeout_ms is not None and request.timeout_ms > self.settings.MAX_TIMEOUT_MS:
            raise TimeoutTooLargeError(
                f"Timeout too long (max {self.settings.MAX_TIMEOUT_MS // 1000} seconds)"
            )

        if request.memory_limit_mb is not None and request.memory_limit_mb > self.settings.MAX_MEMORY_LIMIT_MB:
            raise MemoryLimitTooHighError(
                f"Memory limit too high (max {self.settings.MAX_MEMORY_LIMIT_MB} MB)"
            )

        for pattern in self.patterns:
            if pattern.matches(code):
                logger.warning(
                    f"Rejected submission from {request.user_id}: "
                    f"{pattern.risk_class} pattern ({pattern.description})"
                )
                raise DangerousPatternError(pattern.risk_class, pattern.description)

        logger.debug(f"Validation passed for {request.language} submission from {request.user_id}")
