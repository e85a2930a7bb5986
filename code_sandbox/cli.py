import typer
import asyncio
import json
import os
from typing import Optional

from code_sandbox.config import settings
from code_sandbox.execution.errors import CodeValidationError, UnsupportedLanguageError
from code_sandbox.execution.models import ExecutionRequest, ExecutionStatus
from code_sandbox.execution.service import get_sandbox_service
from code_sandbox.logging_config import configure_logging

app = typer.Typer(help="Code Sandbox CLI")


@app.callback()
def main():
    configure_logging(settings)


def _read_file(path: str) -> str:
    if not os.path.exists(path):
        typer.echo(f"Error: File {path} not found.")
        raise typer.Exit(code=1)
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


@app.command()
def run(
    file: str = typer.Argument(..., help="Source file to execute"),
    language: str = typer.Option(..., "--language", "-l", help="Language key or alias"),
    stdin_file: Optional[str] = typer.Option(None, help="File fed to the program's stdin"),
    timeout_ms: Optional[int] = typer.Option(None, help="Wall-clock limit in milliseconds"),
    memory_mb: Optional[int] = typer.Option(None, help="Memory limit in megabytes"),
    user: str = typer.Option("cli", help="User id recorded with the execution"),
):
    """
    Execute a source file in the sandbox.
    """
    request = ExecutionRequest(
        user_id=user,
        language=language,
        source_code=_read_file(file),
        stdin=_read_file(stdin_file) if stdin_file else None,
        timeout_ms=timeout_ms,
        memory_limit_mb=memory_mb,
    )

    try:
        result = asyncio.run(get_sandbox_service().execute(request))
    except CodeValidationError as e:
        typer.echo(f"Rejected ({e.code.value}): {e}")
        raise typer.Exit(code=1)
    except UnsupportedLanguageError as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)

    if result.stdout:
        typer.echo(result.stdout)
    if result.stderr:
        typer.echo(result.stderr, err=True)
    typer.echo(
        f"[{result.status.value}] {result.execution_time_ms}ms, "
        f"{result.memory_used_bytes} bytes, id {result.id}",
        err=True,
    )

    if result.status != ExecutionStatus.SUCCESS:
        raise typer.Exit(code=1)


@app.command()
def analyze(
    file: str = typer.Argument(..., help="Source file to analyze"),
    language: str = typer.Option("javascript", "--language", "-l"),
):
    """
    Print static complexity metrics for a source file.
    """
    report = get_sandbox_service().analyze(_read_file(file), language)
    typer.echo(json.dumps(report.model_dump(), indent=2))


@app.command()
def health():
    """
    Check the container runtime and the temp root.
    """
    report = get_sandbox_service().health_report()
    for name, ok in report.items():
        typer.echo(f"{name:<20} {'ok' if ok else 'FAILED'}")
    if not report or not all(report.values()):
        raise typer.Exit(code=1)


@app.command()
def languages():
    """
    List supported languages.
    """
    for key in get_sandbox_service().registry.languages():
        typer.echo(key)


if __name__ == "__main__":
    app()
