"""
Tests for the embedded QuickJS fast path. These run real scripts.
"""

import asyncio

import pytest

from code_sandbox.execution.models import ExecutionStatus
from code_sandbox.execution.script_runner import ScriptSandbox


@pytest.fixture
def sandbox(settings):
    return ScriptSandbox(settings)


@pytest.fixture
def run_js(sandbox, registry, make_request):
    def _run(source, **kwargs):
        request = make_request(source, language="javascript", **kwargs)
        return asyncio.run(sandbox.execute_code("exec-js", request, registry.lookup("javascript")))
    return _run


def test_hello_world(run_js):
    outcome = run_js("console.log('Hello, World!');")
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.stdout == "Hello, World!"
    assert outcome.stderr == ""
    assert outcome.exit_code == 0
    assert outcome.memory_used_bytes > 0


def test_console_formats_values(run_js):
    outcome = run_js("console.log('n', 1, {a: 1}, [1, 2]); console.info(true);")
    assert outcome.stdout == 'n 1 {"a":1} [1,2]\ntrue'


def test_console_error_marks_failure(run_js):
    outcome = run_js("console.log('out'); console.error('bad');")
    assert outcome.status == ExecutionStatus.ERROR
    assert outcome.stdout == "out"
    assert outcome.stderr == "bad"
    assert outcome.exit_code == 1


def test_uncaught_exception(run_js):
    outcome = run_js("console.log('before'); throw new Error('boom');")
    assert outcome.status == ExecutionStatus.ERROR
    assert outcome.stdout == "before"
    assert outcome.stderr.startswith("Runtime Error:")
    assert "boom" in outcome.stderr


def test_infinite_loop_is_interrupted(run_js):
    outcome = run_js("while (true) {}", timeout_ms=500)
    assert outcome.status == ExecutionStatus.ERROR
    assert "Script execution timed out after 500ms" in outcome.stderr


def test_timeout_cannot_be_caught(run_js):
    outcome = run_js("try { while (true) {} } catch (e) { console.log('caught'); }", timeout_ms=300)
    assert "caught" not in outcome.stdout
    assert "timed out" in outcome.stderr


def test_stdin_available_as_input(run_js):
    outcome = run_js("console.log(input.trim().split(' ').length);", stdin="a b c\n")
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.stdout == "3"


def test_input_defaults_to_empty_string(run_js):
    outcome = run_js("console.log(JSON.stringify(input));")
    assert outcome.stdout == '""'


@pytest.mark.parametrize("source", [
    "eval('1 + 1');",
    "new Function('return 1')();",
    "(function () {}).constructor('return 1')();",
    "(async function () {}).constructor('return 1');",
])
def test_dynamic_evaluation_blocked(run_js, source):
    outcome = run_js(source)
    assert outcome.status == ExecutionStatus.ERROR
    assert "Dynamic code evaluation is disabled" in outcome.stderr


def test_no_module_loader_or_host_bindings(run_js):
    outcome = run_js("const path = require('path');")
    assert outcome.status == ExecutionStatus.ERROR
    assert "require" in outcome.stderr

    outcome = run_js("console.log(typeof process, typeof __sandboxStdout);")
    assert outcome.stdout == "undefined undefined"


def test_promise_jobs_are_drained(run_js):
    outcome = run_js("Promise.resolve(41).then(v => console.log(v + 1));")
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.stdout == "42"


def test_each_execution_gets_fresh_globals(run_js):
    run_js("globalThis.leaked = 'secret';")
    outcome = run_js("console.log(typeof leaked);")
    assert outcome.stdout == "undefined"


def test_output_is_capped(settings, registry, make_request):
    sandbox = ScriptSandbox(settings.model_copy(update={"MAX_OUTPUT_BYTES": 16}))
    request = make_request("for (let i = 0; i < 100; i++) console.log('xxxxxxxx');", language="javascript")
    outcome = asyncio.run(sandbox.execute_code("exec-cap", request, registry.lookup("javascript")))
    assert outcome.stdout.endswith("[output truncated]")


def test_typescript_runs_on_fast_path(sandbox, registry, make_request):
    request = make_request("const greeting = 'hello';\nconsole.log(greeting);", language="typescript")
    outcome = asyncio.run(sandbox.execute_code("exec-ts", request, registry.lookup("ts")))
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.stdout == "hello"


def test_output_before_timeout_is_kept(run_js):
    outcome = run_js("console.log('started'); while (true) {}", timeout_ms=300)
    assert outcome.stdout == "started"
    assert "timed out" in outcome.stderr


def test_console_stderr_precedes_runtime_error(run_js):
    outcome = run_js("console.warn('careful'); null.boom;")
    assert outcome.stderr.startswith("careful\nRuntime Error:")


def test_capture_survives_tampering(run_js):
    outcome = run_js(
        "__sandboxOutput = null;\n"
        "String = null;\n"
        "JSON.stringify = function () { throw new Error('nope'); };\n"
        "console.log('still', 1);"
    )
    assert outcome.status == ExecutionStatus.SUCCESS
    assert outcome.stdout == "still 1"
