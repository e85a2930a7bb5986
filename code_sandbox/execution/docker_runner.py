import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

import docker
from docker.errors import DockerException, ImageNotFound, NotFound

from code_sandbox.config import Settings, settings as default_settings
from code_sandbox.execution.environments import ExecutionEnvironment
from code_sandbox.execution.errors import InfrastructureError
from code_sandbox.execution.models import ExecutionRequest, ExecutionStatus, RunOutcome
from code_sandbox.execution.output import OutputBuffer, split_combined_output
from code_sandbox.execution.sandbox import ExecutionService
from code_sandbox.execution.workspace import WorkingDirectory
from code_sandbox.observability.tracing import get_tracer, trace_span, add_span_attributes

logger = logging.getLogger(__name__)
tracer = get_tracer("sandbox.container")

CONTAINER_WORKDIR = "/workspace"
EXECUTION_LABEL = "code-sandbox.execution-id"
LANGUAGE_LABEL = "code-sandbox.language"
INSTANCE_LABEL = "code-sandbox.instance-id"


class DockerSandbox(ExecutionService):
    """
    Runs one execution per throwaway container.

    The container gets no network, a read-only root filesystem, a read-only
    bind mount of the execution's working directory, a small tmpfs for
    build artefacts, and memory/CPU/pid caps. A watchdog races the
    container's exit; if it wins, the container is killed. The container is
    force-removed when the execution leaves its scope, on every path.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Any] = None):
        self.settings = settings or default_settings
        self._client = client

    @property
    def client(self):
        if self._client is None:
            try:
                if self.settings.DOCKER_BASE_URL:
                    self._client = docker.DockerClient(base_url=self.settings.DOCKER_BASE_URL)
                else:
                    self._client = docker.from_env()
            except DockerException as e:
                logger.error(f"Failed to initialize Docker client: {e}")
                raise InfrastructureError(f"Docker client not initialized. Is Docker running? ({e})") from e
        return self._client

    async def execute_code(
        self,
        execution_id: str,
        request: ExecutionRequest,
        environment: ExecutionEnvironment,
    ) -> RunOutcome:
        timeout_ms = request.timeout_ms or self.settings.DEFAULT_CONTAINER_TIMEOUT_MS
        memory_mb = request.memory_limit_mb or self.settings.DEFAULT_MEMORY_LIMIT_MB

        with trace_span(tracer, "sandbox.container.run", attributes={
            "execution.id": execution_id,
            "execution.language": environment.language_key,
            "container.image": environment.container_image,
            "container.timeout_ms": timeout_ms,
            "container.memory_mb": memory_mb,
        }) as span:
            async with self._workspace_scope(execution_id, request, environment) as (workdir, command):
                async with self._container_scope(execution_id, environment, command, workdir, memory_mb) as container:
                    outcome = await self._run_container(container, timeout_ms)

            add_span_attributes(span, {
                "execution.status": outcome.status.value,
                "container.exit_code": outcome.exit_code,
            })
            return outcome

    @asynccontextmanager
    async def _workspace_scope(
        self,
        execution_id: str,
        request: ExecutionRequest,
        environment: ExecutionEnvironment,
    ):
        # Filesystem work stays off the event loop, like the SDK calls
        workdir = WorkingDirectory(self.settings.TEMP_DIR, execution_id)
        await asyncio.to_thread(workdir.create)
        try:
            command = await asyncio.to_thread(self._materialize, workdir, request, environment)
            yield workdir, command
        finally:
            await asyncio.to_thread(workdir.cleanup)

    @staticmethod
    def _materialize(
        workdir: WorkingDirectory,
        request: ExecutionRequest,
        environment: ExecutionEnvironment,
    ) -> List[str]:
        entry = environment.entry_filename()
        workdir.write_source(entry, request.source_code)
        stdin_name = workdir.write_stdin(request.stdin)
        return environment.build_command(entry, stdin_name)

    @asynccontextmanager
    async def _container_scope(
        self,
        execution_id: str,
        environment: ExecutionEnvironment,
        command: List[str],
        workdir: WorkingDirectory,
        memory_mb: int,
    ):
        container = await asyncio.to_thread(
            self._create_container, execution_id, environment, command, workdir, memory_mb
        )
        try:
            yield container
        finally:
            await asyncio.to_thread(self._remove_container, container)

    def _create_container(
        self,
        execution_id: str,
        environment: ExecutionEnvironment,
        command: List[str],
        workdir: WorkingDirectory,
        memory_mb: int,
    ):
        memory_bytes = memory_mb * 1024 * 1024
        try:
            container = self.client.containers.create(
                environment.container_image,
                command=command,
                working_dir=CONTAINER_WORKDIR,
                environment=dict(environment.environment),
                mem_limit=memory_bytes,
                memswap_limit=memory_bytes,  # no swap on top of the memory cap
                cpu_quota=self.settings.CPU_QUOTA,
                cpu_period=self.settings.CPU_PERIOD,
                pids_limit=self.settings.PIDS_LIMIT,
                network_mode="none",
                network_disabled=True,
                read_only=True,
                volumes={str(workdir.path): {"bind": CONTAINER_WORKDIR, "mode": "ro"}},
                tmpfs={"/tmp": f"rw,exec,nosuid,size={self.settings.TMPFS_SIZE_MB}m"},
                cap_drop=["ALL"],
                security_opt=["no-new-privileges"],
                labels={
                    EXECUTION_LABEL: execution_id,
                    LANGUAGE_LABEL: environment.language_key,
                    INSTANCE_LABEL: self.settings.SANDBOX_INSTANCE_ID,
                },
            )
        except ImageNotFound as e:
            raise InfrastructureError(f"Container image not available: {environment.container_image}") from e
        except DockerException as e:
            logger.error(f"Container creation failed for execution {execution_id}: {e}")
            raise InfrastructureError(f"Failed to create container: {e}") from e

        logger.debug(f"Created container {container.id[:12]} for execution {execution_id}")
        return container

    def _remove_container(self, container) -> None:
        try:
            container.remove(force=True)
        except NotFound:
            pass
        except DockerException as e:
            logger.warning(f"Failed to remove container {container.id[:12]}: {e}")

    async def _run_container(self, container, timeout_ms: int) -> RunOutcome:
        demux = self.settings.STREAM_MODE == "demux"
        stdout = OutputBuffer(self.settings.MAX_OUTPUT_BYTES)
        stderr = OutputBuffer(self.settings.MAX_OUTPUT_BYTES)
        start_time = time.monotonic()

        try:
            # Attach before start so no early output is lost
            stream = await asyncio.to_thread(
                container.attach, stdout=True, stderr=True, stream=True, logs=True, demux=demux
            )
            await asyncio.to_thread(container.start)
        except DockerException as e:
            raise InfrastructureError(f"Failed to start container: {e}") from e

        collector = asyncio.create_task(
            asyncio.to_thread(self._collect_output, stream, stdout, stderr, demux)
        )
        exit_waiter = asyncio.create_task(asyncio.to_thread(self._wait_for_exit, container))
        watchdog = asyncio.create_task(asyncio.sleep(timeout_ms / 1000))

        timed_out = False
        try:
            done, _ = await asyncio.wait({exit_waiter, watchdog}, return_when=asyncio.FIRST_COMPLETED)
            if exit_waiter not in done:
                timed_out = True
                logger.info(f"Container {container.id[:12]} exceeded {timeout_ms}ms, killing")
                await asyncio.to_thread(self._force_kill, container)
        finally:
            watchdog.cancel()

        grace = self.settings.KILL_GRACE_SECONDS
        try:
            wait_result = await asyncio.wait_for(exit_waiter, timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"Container {container.id[:12]} did not report exit within {grace}s")
            wait_result = {"StatusCode": -1, "Error": {"Message": "container did not exit"}}

        try:
            await asyncio.wait_for(collector, timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"Output stream of container {container.id[:12]} did not close within {grace}s")

        duration_ms = (time.monotonic() - start_time) * 1000
        oom_killed, memory_used = await asyncio.to_thread(self._inspect, container)

        exit_code = int(wait_result.get("StatusCode", -1))
        wait_error = (wait_result.get("Error") or {}).get("Message")

        if demux:
            out_text, err_text = stdout.getvalue(), stderr.getvalue()
        else:
            out_text, err_text = split_combined_output(stdout.getvalue())

        if timed_out:
            status = ExecutionStatus.TIMEOUT
            err_text = _append_line(err_text, "Code execution timed out")
        elif oom_killed:
            status = ExecutionStatus.MEMORY_EXCEEDED
            err_text = _append_line(err_text, "Memory limit exceeded")
        elif exit_code != 0:
            status = ExecutionStatus.ERROR
            if wait_error:
                err_text = _append_line(err_text, wait_error)
        else:
            status = ExecutionStatus.SUCCESS

        return RunOutcome(
            status=status,
            stdout=out_text,
            stderr=err_text,
            exit_code=exit_code,
            memory_used_bytes=memory_used,
            duration_ms=duration_ms,
        )

    def _collect_output(self, stream, stdout: OutputBuffer, stderr: OutputBuffer, demux: bool) -> None:
        try:
            for chunk in stream:
                if demux:
                    out, err = chunk
                    stdout.write(out)
                    stderr.write(err)
                else:
                    stdout.write(chunk)
        except DockerException as e:
            logger.warning(f"Output stream interrupted: {e}")

    def _wait_for_exit(self, container) -> Dict[str, Any]:
        try:
            return container.wait()
        except DockerException as e:
            logger.warning(f"Waiting on container {container.id[:12]} failed: {e}")
            return {"StatusCode": -1, "Error": {"Message": f"Failed waiting for container: {e}"}}

    def _force_kill(self, container) -> None:
        try:
            container.kill()
        except DockerException as e:
            # Container may have exited between the race and the kill
            logger.debug(f"Kill of container {container.id[:12]} failed: {e}")

    def _inspect(self, container) -> Tuple[bool, int]:
        """Read the OOM flag and the memory high-water mark. Zero when unavailable."""
        oom_killed = False
        memory_used = 0

        try:
            container.reload()
            state = container.attrs.get("State") or {}
            oom_killed = bool(state.get("OOMKilled", False))
        except DockerException as e:
            logger.debug(f"Could not inspect container {container.id[:12]}: {e}")

        try:
            stats = container.stats(stream=False)
            memory_stats = stats.get("memory_stats") or {}
            memory_used = int(memory_stats.get("max_usage") or memory_stats.get("usage") or 0)
        except DockerException as e:
            logger.debug(f"Could not read stats for container {container.id[:12]}: {e}")

        return oom_killed, max(memory_used, 0)

    def remove_stale_containers(self) -> List[str]:
        """
        Force-remove sandbox containers left behind by a crashed process.

        Only containers labelled with this instance's id are touched, so
        replicas sharing a daemon never remove each other's executions.

        Returns:
            Ids of the removed containers

        Raises:
            InfrastructureError: The runtime is unreachable
        """
        removed = []
        try:
            containers = self.client.containers.list(all=True, filters={"label": [
                EXECUTION_LABEL,
                f"{INSTANCE_LABEL}={self.settings.SANDBOX_INSTANCE_ID}",
            ]})
        except DockerException as e:
            raise InfrastructureError(f"Failed to list sandbox containers: {e}") from e
        for container in containers:
            self._remove_container(container)
            removed.append(container.id)
        if removed:
            logger.info(f"Cleaned up {len(removed)} stale sandbox containers")
        return removed


def _append_line(text: str, line: str) -> str:
    return f"{text}\n{line}" if text else line
