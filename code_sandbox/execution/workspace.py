"""
Per-execution working directory.

A WorkingDirectory is owned by exactly one execution and is removed when
its context exits, whatever the outcome. Removal failures are logged and
never replace the execution's own result or exception.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Union

from code_sandbox.execution.errors import InfrastructureError

logger = logging.getLogger(__name__)

STDIN_FILENAME = "input.txt"


class WorkingDirectory:
    def __init__(self, root: Union[str, Path], execution_id: str):
        self.root = Path(root)
        self.path = self.root / execution_id
        self._created = False

    def __enter__(self) -> "WorkingDirectory":
        return self.create()

    def create(self) -> "WorkingDirectory":
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            # exist_ok=False: a clash means two executions share an id
            self.path.mkdir(mode=0o755)
            # mkdir's mode is filtered by the umask; containers run as other users
            os.chmod(self.path, 0o755)
        except OSError as e:
            raise InfrastructureError(f"Failed to create working directory {self.path}: {e}") from e
        self._created = True
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cleanup()
        return False

    def write_file(self, name: str, content: str) -> Path:
        if Path(name).name != name:
            raise ValueError(f"Invalid file name: {name}")
        target = self.path / name
        try:
            target.write_text(content, encoding="utf-8")
            os.chmod(target, 0o644)
        except OSError as e:
            raise InfrastructureError(f"Failed to write {name}: {e}") from e
        return target

    def write_source(self, entry_filename: str, source_code: str) -> Path:
        return self.write_file(entry_filename, source_code)

    def write_stdin(self, stdin: Optional[str]) -> Optional[str]:
        """Write stdin to the sibling file. Returns its name, or None when there is no stdin."""
        if not stdin:
            return None
        self.write_file(STDIN_FILENAME, stdin)
        return STDIN_FILENAME

    def cleanup(self) -> None:
        if not self._created:
            return
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to cleanup directory {self.path}: {e}")
        finally:
            self._created = False
