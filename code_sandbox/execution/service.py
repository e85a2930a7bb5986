"""
Sandbox Service - Public API for code execution.

All executions flow through SandboxService.execute():

1. Validate the request (rejections raise before anything is allocated)
2. Resolve the execution environment (unknown languages raise)
3. Route to the script fast path or the container path
4. Convert every execution-time failure into a structured result
5. Assemble the canonical ExecutionResult and emit lifecycle events
"""

import logging
import uuid
from pathlib import Path
from typing import Dict, Optional

from code_sandbox.analysis.complexity import ComplexityReport, analyze
from code_sandbox.config import Settings, settings as default_settings
from code_sandbox.execution.assembler import ResultAssembler, compute_code_hash
from code_sandbox.execution.docker_runner import DockerSandbox
from code_sandbox.execution.environments import (
    EnvironmentRegistry,
    ExecutionEnvironment,
    create_default_registry,
)
from code_sandbox.execution.errors import CodeValidationError, SandboxError
from code_sandbox.execution.models import ExecutionRequest, ExecutionResult, ExecutionStatus
from code_sandbox.execution.sandbox import ExecutionService
from code_sandbox.execution.script_runner import ScriptSandbox
from code_sandbox.execution.validation import RequestValidator
from code_sandbox.health import HealthMonitor
from code_sandbox.observability.events import ExecutionEventEmitter, ExecutionEventType
from code_sandbox.observability.tracing import get_tracer, trace_span, add_span_attributes

logger = logging.getLogger(__name__)
tracer = get_tracer("sandbox.service")


class SandboxService:
    def __init__(
        self,
        registry: EnvironmentRegistry,
        validator: RequestValidator,
        script_sandbox: ExecutionService,
        container_sandbox: ExecutionService,
        assembler: Optional[ResultAssembler] = None,
        settings: Optional[Settings] = None,
        events: Optional[ExecutionEventEmitter] = None,
        health_monitor: Optional[HealthMonitor] = None,
    ):
        self.registry = registry
        self.validator = validator
        self.script_sandbox = script_sandbox
        self.container_sandbox = container_sandbox
        self.assembler = assembler or ResultAssembler()
        self.settings = settings or default_settings
        self.events = events or ExecutionEventEmitter()
        self.health_monitor = health_monitor

    def select_backend(self, environment: ExecutionEnvironment) -> ExecutionService:
        if environment.script_runtime and self.settings.SCRIPT_FAST_PATH_ENABLED:
            return self.script_sandbox
        return self.container_sandbox

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """
        Execute a submission and return its result.

        Raises:
            CodeValidationError: The submission was rejected before execution
            UnsupportedLanguageError: No environment is registered for the language
        """
        accepted_at = self.assembler.now()
        execution_id = str(uuid.uuid4())
        code_hash = compute_code_hash(request.source_code)
        event_context = {
            "user_id": request.user_id,
            "session_id": request.session_id,
            "language": request.language,
            "code_hash": code_hash,
        }

        with trace_span(tracer, "sandbox.execute", attributes={
            "execution.id": execution_id,
            "execution.language": request.language,
            "execution.code_hash": code_hash,
        }) as span:
            try:
                self.validator.validate(request)
            except CodeValidationError as e:
                self.events.emit(
                    execution_id,
                    ExecutionEventType.EXECUTION_REJECTED,
                    payload={"code": e.code.value, "message": str(e)},
                    **event_context,
                )
                raise

            environment = self.registry.lookup(request.language)
            backend = self.select_backend(environment)

            logger.info(
                f"Starting code execution {execution_id} for user {request.user_id} "
                f"({environment.language_key}, hash {code_hash[:12]})"
            )
            self.events.emit(execution_id, ExecutionEventType.EXECUTION_ACCEPTED, **event_context)

            try:
                outcome = await backend.execute_code(execution_id, request, environment)
                result = self.assembler.assemble(execution_id, request, outcome, accepted_at)
            except SandboxError as e:
                logger.error(f"Code execution {execution_id} failed: {e}")
                result = self.assembler.failure(execution_id, request, str(e), accepted_at)
            except Exception as e:
                logger.exception(f"Unexpected failure in code execution {execution_id}")
                result = self.assembler.failure(
                    execution_id, request, f"Internal execution error: {type(e).__name__}", accepted_at
                )

            add_span_attributes(span, {
                "execution.status": result.status.value,
                "execution.time_ms": result.execution_time_ms,
            })

        event_type = (
            ExecutionEventType.EXECUTION_COMPLETED
            if result.status == ExecutionStatus.SUCCESS
            else ExecutionEventType.EXECUTION_FAILED
        )
        self.events.emit(
            execution_id,
            event_type,
            status=result.status.value,
            execution_time_ms=result.execution_time_ms,
            payload={"memory_used_bytes": result.memory_used_bytes},
            **event_context,
        )
        logger.info(f"Code execution {execution_id} finished with {result.status.value} in {result.execution_time_ms}ms")
        return result

    def analyze(self, source_code: str, language: str) -> ComplexityReport:
        return analyze(source_code, language)

    def health_report(self) -> Dict[str, bool]:
        if self.health_monitor is None:
            return {}
        return self.health_monitor.report()

    def health(self) -> bool:
        if self.health_monitor is None:
            return False
        return self.health_monitor.check()


def build_sandbox_service(
    settings: Optional[Settings] = None,
    registry: Optional[EnvironmentRegistry] = None,
    docker_client=None,
) -> SandboxService:
    """Wire a SandboxService with the default registry and both backends."""
    settings = settings or default_settings
    Path(settings.TEMP_DIR).mkdir(parents=True, exist_ok=True)

    container_sandbox = DockerSandbox(settings=settings, client=docker_client)
    return SandboxService(
        registry=registry or create_default_registry(),
        validator=RequestValidator(settings),
        script_sandbox=ScriptSandbox(settings),
        container_sandbox=container_sandbox,
        settings=settings,
        health_monitor=HealthMonitor(lambda: container_sandbox.client, settings.TEMP_DIR),
    )


_service: Optional[SandboxService] = None


def get_sandbox_service() -> SandboxService:
    global _service
    if _service is None:
        _service = build_sandbox_service()
    return _service
