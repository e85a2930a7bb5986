import asyncio

import pytest

from code_sandbox.config import Settings
from code_sandbox.execution.environments import create_default_registry
from code_sandbox.execution.models import ExecutionRequest, ExecutionStatus, RunOutcome
from code_sandbox.execution.sandbox import ExecutionService
from code_sandbox.execution.service import SandboxService
from code_sandbox.execution.validation import RequestValidator
from code_sandbox.observability.events import ExecutionEventEmitter


class FakeBackend(ExecutionService):
    """Records calls and returns a canned outcome (or raises)."""

    def __init__(self, outcome=None, error=None, delay=0.0):
        self.outcome = outcome or RunOutcome(status=ExecutionStatus.SUCCESS, stdout="ok", memory_used_bytes=42)
        self.error = error
        self.delay = delay
        self.calls = []

    async def execute_code(self, execution_id, request, environment):
        self.calls.append((execution_id, request, environment))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.outcome


@pytest.fixture
def settings(tmp_path):
    """Settings pointing the temp root at a per-test directory."""
    return Settings(
        TEMP_DIR=str(tmp_path / "executions"),
        KILL_GRACE_SECONDS=1.0,
        TRACING_ENABLED=False,
    )


@pytest.fixture
def registry():
    return create_default_registry()


@pytest.fixture
def make_request():
    def _make(source_code="print('hi')", language="python", **kwargs):
        kwargs.setdefault("user_id", "user-1")
        return ExecutionRequest(language=language, source_code=source_code, **kwargs)
    return _make


@pytest.fixture
def script_backend():
    return FakeBackend()


@pytest.fixture
def container_backend():
    return FakeBackend()


@pytest.fixture
def events():
    """Emitter whose sink collects every event into .received."""
    received = []
    emitter = ExecutionEventEmitter([received.append])
    emitter.received = received
    return emitter


@pytest.fixture
def service(registry, settings, script_backend, container_backend, events):
    return SandboxService(
        registry=registry,
        validator=RequestValidator(settings),
        script_sandbox=script_backend,
        container_sandbox=container_backend,
        settings=settings,
        events=events,
    )
