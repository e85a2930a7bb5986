"""
Tests for SandboxService orchestration with fake backends.
"""

import asyncio
import uuid

import pytest

from code_sandbox.execution.assembler import compute_code_hash
from code_sandbox.execution.errors import (
    CodeTooLargeError,
    DangerousPatternError,
    InfrastructureError,
    UnsupportedLanguageError,
)
from code_sandbox.execution.models import ExecutionStatus, RunOutcome


def execute(service, request):
    return asyncio.run(service.execute(request))


def test_successful_execution(service, container_backend, make_request):
    request = make_request("print('ok')")
    result = execute(service, request)

    assert result.status == ExecutionStatus.SUCCESS
    assert result.stdout == "ok"
    assert result.stderr is None
    assert result.memory_used_bytes == 42
    assert result.execution_time_ms >= 0
    assert result.language == "python"
    assert result.code_hash == compute_code_hash("print('ok')")
    assert str(uuid.UUID(result.id)) == result.id

    execution_id, passed_request, environment = container_backend.calls[0]
    assert execution_id == result.id
    assert passed_request is request
    assert environment.language_key == "python"


@pytest.mark.parametrize("language", ["javascript", "js", "typescript", "ts"])
def test_script_languages_use_fast_path(service, script_backend, container_backend, make_request, language):
    execute(service, make_request("console.log(1)", language=language))
    assert len(script_backend.calls) == 1
    assert container_backend.calls == []


@pytest.mark.parametrize("language", ["python", "java", "c", "cpp", "go", "rust"])
def test_other_languages_use_containers(service, script_backend, container_backend, make_request, language):
    execute(service, make_request("hello world", language=language))
    assert len(container_backend.calls) == 1
    assert script_backend.calls == []


def test_fast_path_can_be_disabled(service, settings, script_backend, container_backend, make_request):
    service.settings = settings.model_copy(update={"SCRIPT_FAST_PATH_ENABLED": False})
    execute(service, make_request("console.log(1)", language="javascript"))
    assert script_backend.calls == []
    assert len(container_backend.calls) == 1


def test_oversized_code_never_reaches_a_backend(service, script_backend, container_backend, make_request, events):
    with pytest.raises(CodeTooLargeError):
        execute(service, make_request("x" * 10_001))

    assert script_backend.calls == []
    assert container_backend.calls == []
    assert [e["event_type"] for e in events.received] == ["execution.rejected"]
    assert events.received[0]["payload"]["code"] == "code_too_large"


@pytest.mark.parametrize("language,source", [
    ("javascript", "require('fs').readFileSync('/etc/passwd')"),
    ("python", "import subprocess\nsubprocess.run(['ls'])"),
    ("java", "class Main { public static void main(String[] a) { System.exit(0); } }"),
    ("cpp", "#include <cstdlib>\nint main() { system(\"ls\"); }"),
])
def test_dangerous_code_never_reaches_a_backend(service, script_backend, container_backend, make_request, language, source):
    with pytest.raises(DangerousPatternError):
        execute(service, make_request(source, language=language))
    assert script_backend.calls == []
    assert container_backend.calls == []


def test_unsupported_language_raises(service, container_backend, make_request):
    with pytest.raises(UnsupportedLanguageError):
        execute(service, make_request("DISPLAY 'HI'", language="cobol"))
    assert container_backend.calls == []


def test_infrastructure_error_becomes_error_result(service, container_backend, make_request, events):
    container_backend.error = InfrastructureError("Failed to create container: daemon unavailable")

    result = execute(service, make_request())

    assert result.status == ExecutionStatus.ERROR
    assert result.stderr == "Failed to create container: daemon unavailable"
    assert result.stdout is None
    assert events.received[-1]["event_type"] == "execution.failed"


def test_unexpected_error_becomes_error_result(service, container_backend, make_request):
    container_backend.error = RuntimeError("kaboom")

    result = execute(service, make_request())

    assert result.status == ExecutionStatus.ERROR
    assert result.stderr == "Internal execution error: RuntimeError"


def test_timeout_outcome_is_reported(service, container_backend, make_request, events):
    container_backend.outcome = RunOutcome(
        status=ExecutionStatus.TIMEOUT, stderr="Code execution timed out", exit_code=137
    )

    result = execute(service, make_request("while True: pass"))

    assert result.status == ExecutionStatus.TIMEOUT
    assert result.stderr == "Code execution timed out"
    final = events.received[-1]
    assert final["event_type"] == "execution.failed"
    assert final["status"] == "timeout"


def test_lifecycle_events(service, make_request, events):
    result = execute(service, make_request(session_id="session-9"))

    types = [e["event_type"] for e in events.received]
    assert types == ["execution.accepted", "execution.completed"]
    for event in events.received:
        assert event["execution_id"] == result.id
        assert event["user_id"] == "user-1"
        assert event["session_id"] == "session-9"
        assert event["code_hash"] == result.code_hash
        assert "print('hi')" not in str(event)
    assert events.received[-1]["execution_time_ms"] == result.execution_time_ms


def test_concurrent_executions_are_independent(service, container_backend, make_request):
    container_backend.delay = 0.01

    async def run_all():
        requests = [make_request(f"print({i})", user_id=f"user-{i}") for i in range(10)]
        return await asyncio.gather(*(service.execute(r) for r in requests))

    results = asyncio.run(run_all())

    assert len({r.id for r in results}) == 10
    assert all(r.status == ExecutionStatus.SUCCESS for r in results)
    assert [r.code_hash for r in results] == [compute_code_hash(f"print({i})") for i in range(10)]


def test_analyze_delegates_to_complexity(service):
    report = service.analyze("if (a) { b(); }", "javascript")
    assert report.cyclomatic_complexity == 2


def test_health_without_monitor_is_not_ready(service):
    assert service.health_report() == {}
    assert service.health() is False
