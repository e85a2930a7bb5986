"""
Execution Environment Registry

Static, per-language descriptors (container image, run command, file
extension, optional compile step). The registry is built once at startup
and is read-only afterwards, so concurrent lookups need no locking.
"""

import logging
import shlex
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from code_sandbox.execution.errors import UnsupportedLanguageError

logger = logging.getLogger(__name__)


class ExecutionEnvironment(BaseModel):
    """Descriptor for running one language inside a container."""
    model_config = ConfigDict(frozen=True)

    language_key: str = Field(..., min_length=1)
    container_image: str
    run_command: Tuple[str, ...]
    file_extension: str
    compile_command: Optional[Tuple[str, ...]] = None
    aliases: Tuple[str, ...] = ()
    entry_stem: str = "main"
    environment: Dict[str, str] = Field(default_factory=dict)
    script_runtime: bool = False

    def entry_filename(self) -> str:
        return f"{self.entry_stem}{self.file_extension}"

    def build_command(self, entry_filename: str, stdin_filename: Optional[str] = None) -> List[str]:
        """
        Build the container command for the given entry file.

        With no compile step and no stdin this is simply the run command with
        the entry filename appended. Otherwise a small shell script compiles
        the entry file (passed as $0), then execs the run command with stdin
        redirected from the sibling file.
        """
        if not self.compile_command and not stdin_filename:
            return [*self.run_command, entry_filename]

        if self.compile_command:
            run = shlex.join(self.run_command)
            script = f'{shlex.join(self.compile_command)} "$0" && exec {run}'
        else:
            script = f'exec {shlex.join(self.run_command)} "$0"'

        if stdin_filename:
            script += f" < {shlex.quote(stdin_filename)}"

        return ["sh", "-c", script, entry_filename]


class EnvironmentRegistry:
    """
    Immutable, case-insensitive map from language key (or alias) to
    ExecutionEnvironment.
    """

    def __init__(self, environments: Iterable[ExecutionEnvironment]):
        table: Dict[str, ExecutionEnvironment] = {}
        canonical: List[str] = []

        for env in environments:
            keys = [env.language_key, *env.aliases]
            for key in keys:
                key = key.lower()
                if key in table:
                    raise ValueError(f"Duplicate language key in registry: {key}")
                table[key] = env
            canonical.append(env.language_key.lower())

        self._table = MappingProxyType(table)
        self._languages = tuple(canonical)

    def get(self, language: str) -> Optional[ExecutionEnvironment]:
        return self._table.get(language.strip().lower())

    def lookup(self, language: str) -> ExecutionEnvironment:
        """
        Resolve a language key or alias.

        Raises:
            UnsupportedLanguageError: If nothing is registered for the key
        """
        env = self.get(language)
        if env is None:
            raise UnsupportedLanguageError(language)
        return env

    def languages(self) -> List[str]:
        return list(self._languages)

    def __contains__(self, language: object) -> bool:
        return isinstance(language, str) and self.get(language) is not None

    def __len__(self) -> int:
        return len(self._languages)


def default_environments() -> Tuple[ExecutionEnvironment, ...]:
    """The fixed language table shipped with the sandbox."""
    return (
        ExecutionEnvironment(
            language_key="javascript",
            aliases=("js", "node"),
            container_image="node:18-alpine",
            run_command=("node",),
            file_extension=".js",
            script_runtime=True,
        ),
        ExecutionEnvironment(
            language_key="typescript",
            aliases=("ts",),
            container_image="denoland/deno:alpine",
            run_command=("deno", "run", "--quiet", "--no-prompt"),
            file_extension=".ts",
            environment={"DENO_DIR": "/tmp/deno"},
            script_runtime=True,
        ),
        ExecutionEnvironment(
            language_key="python",
            aliases=("py", "python3"),
            container_image="python:3.11-alpine",
            run_command=("python", "-u"),
            file_extension=".py",
            environment={"PYTHONDONTWRITEBYTECODE": "1"},
        ),
        ExecutionEnvironment(
            language_key="java",
            container_image="eclipse-temurin:17-jdk-alpine",
            compile_command=("javac", "-d", "/tmp/build"),
            run_command=("java", "-cp", "/tmp/build", "Main"),
            file_extension=".java",
            entry_stem="Main",
        ),
        ExecutionEnvironment(
            language_key="c",
            container_image="gcc:13",
            compile_command=("gcc", "-O2", "-o", "/tmp/main"),
            run_command=("/tmp/main",),
            file_extension=".c",
        ),
        ExecutionEnvironment(
            language_key="cpp",
            aliases=("c++",),
            container_image="gcc:13",
            compile_command=("g++", "-O2", "-std=c++17", "-o", "/tmp/main"),
            run_command=("/tmp/main",),
            file_extension=".cpp",
        ),
        ExecutionEnvironment(
            language_key="go",
            aliases=("golang",),
            container_image="golang:1.22-alpine",
            run_command=("go", "run"),
            file_extension=".go",
            environment={"GOCACHE": "/tmp/go-cache", "GOPATH": "/tmp/go", "HOME": "/tmp"},
        ),
        ExecutionEnvironment(
            language_key="rust",
            aliases=("rs",),
            container_image="rust:1.79-alpine",
            compile_command=("rustc", "-O", "-o", "/tmp/main"),
            run_command=("/tmp/main",),
            file_extension=".rs",
        ),
    )


def create_default_registry() -> EnvironmentRegistry:
    registry = EnvironmentRegistry(default_environments())
    logger.info(f"Loaded {len(registry)} execution environments: {', '.join(registry.languages())}")
    return registry
