"""
Script Sandbox - In-process fast path for ECMAScript-family code.

Each request gets a fresh QuickJS context with no module loader and no
filesystem, process or network bindings. No host functions are exposed:
console output is buffered inside the context and read back once the
script has finished (or failed). stdin is provided as the global `input`
string. Dynamic evaluation (eval, Function and its async/generator
siblings) is disabled by a prelude before user code runs.
"""

import asyncio
import json
import logging
import time
from typing import Optional

import quickjs

from code_sandbox.config import Settings, settings as default_settings
from code_sandbox.execution.environments import ExecutionEnvironment
from code_sandbox.execution.models import ExecutionRequest, ExecutionStatus, RunOutcome
from code_sandbox.execution.output import OutputBuffer
from code_sandbox.execution.sandbox import ExecutionService
from code_sandbox.observability.tracing import get_tracer, trace_span, add_span_attributes

logger = logging.getLogger(__name__)
tracer = get_tracer("sandbox.script")

# Upper bound on promise jobs drained after the main script
MAX_PENDING_JOBS = 10_000

OUTPUT_READER = "__sandboxOutput"

# Called as PRELUDE(globalThis, limit). Captured text per stream stops
# growing once it exceeds `limit` characters.
PRELUDE = r"""
(function (global, limit) {
  var toText = String;
  var stringify = JSON.stringify;
  var streams = { stdout: '', stderr: '' };

  function format(args) {
    var line = '';
    for (var i = 0; i < args.length; i++) {
      var value = args[i];
      if (i > 0) line += ' ';
      if (typeof value === 'string' || value instanceof Error) {
        line += toText(value);
        continue;
      }
      try {
        var json = stringify(value);
        line += json === undefined ? toText(value) : json;
      } catch (e) {
        line += toText(value);
      }
    }
    return line + '\n';
  }

  function capture(name) {
    return function () {
      if (streams[name].length > limit) return;
      streams[name] += format(arguments);
    };
  }

  var toStdout = capture('stdout');
  var toStderr = capture('stderr');
  global.console = Object.freeze({
    log: toStdout, info: toStdout, debug: toStdout,
    error: toStderr, warn: toStderr
  });
  Object.defineProperty(global, '__sandboxOutput', {
    value: function (name) { return streams[name]; },
    writable: false, configurable: false, enumerable: false
  });

  var blocked = function () {
    throw new EvalError('Dynamic code evaluation is disabled');
  };
  [function () {}, function* () {}, async function () {}, async function* () {}].forEach(function (fn) {
    Object.defineProperty(Object.getPrototypeOf(fn), 'constructor', {
      value: blocked, writable: false, configurable: false
    });
  });
  Object.defineProperty(global, 'eval', { value: blocked, writable: false, configurable: false });
  Object.defineProperty(global, 'Function', { value: blocked, writable: false, configurable: false });
})
"""


class ScriptSandbox(ExecutionService):
    """
    Runs JavaScript in an embedded QuickJS interpreter.

    The timeout is enforced by QuickJS's interrupt handler, which measures
    process CPU time (C `clock()`), not wall-clock time. CPU-bound work in
    other threads of this process counts against the same budget, so under
    load a script can be interrupted before it has used its full timeout of
    its own CPU. A script that blocks without using CPU cannot exist here:
    the context has no timers or I/O.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    async def execute_code(
        self,
        execution_id: str,
        request: ExecutionRequest,
        environment: ExecutionEnvironment,
    ) -> RunOutcome:
        with trace_span(tracer, "sandbox.script.run", attributes={
            "execution.id": execution_id,
            "execution.language": environment.language_key,
        }) as span:
            outcome = await asyncio.to_thread(self._run, request)
            add_span_attributes(span, {"execution.status": outcome.status.value})
            return outcome

    def _run(self, request: ExecutionRequest) -> RunOutcome:
        timeout_ms = request.timeout_ms or self.settings.DEFAULT_SCRIPT_TIMEOUT_MS
        stdout = OutputBuffer(self.settings.MAX_OUTPUT_BYTES)
        stderr = OutputBuffer(self.settings.MAX_OUTPUT_BYTES)
        start_time = time.monotonic()

        context = quickjs.Context()
        context.set_memory_limit(self.settings.SCRIPT_MEMORY_LIMIT_MB * 1024 * 1024)
        context.eval(f"({PRELUDE})(globalThis, {self.settings.MAX_OUTPUT_BYTES});")
        context.eval(
            "Object.defineProperty(globalThis, 'input', "
            f"{{ value: {json.dumps(request.stdin or '')}, writable: false }});"
        )

        error_message = None
        context.set_time_limit(timeout_ms / 1000)
        try:
            context.eval(request.source_code)
            for _ in range(MAX_PENDING_JOBS):
                if not context.execute_pending_job():
                    break
        except quickjs.JSException as e:
            error_message = str(e)
            if "interrupted" in error_message:
                error_message = f"Script execution timed out after {timeout_ms}ms"
        finally:
            # Reading the captured streams back needs an unlimited context
            context.set_time_limit(-1)

        self._read_stream(context, "stdout", stdout)
        self._read_stream(context, "stderr", stderr)
        if error_message:
            stderr.write(f"Runtime Error: {error_message}\n")

        duration_ms = (time.monotonic() - start_time) * 1000
        out_text = stdout.getvalue()
        err_text = stderr.getvalue()

        # Estimate only: captured output plus source size
        memory_used = len((out_text + err_text + request.source_code).encode("utf-8"))

        status = ExecutionStatus.ERROR if err_text else ExecutionStatus.SUCCESS
        logger.debug(f"Script finished with {status.value} in {duration_ms:.1f}ms")

        return RunOutcome(
            status=status,
            stdout=out_text,
            stderr=err_text,
            exit_code=1 if err_text else 0,
            memory_used_bytes=memory_used,
            duration_ms=duration_ms,
        )

    def _read_stream(self, context, name: str, buffer: OutputBuffer) -> None:
        try:
            buffer.write(context.eval(f"{OUTPUT_READER}('{name}')"))
        except quickjs.JSException as e:
            # e.g. the heap limit was hit while the script was printing
            logger.warning(f"Could not read captured {name}: {e}")
