"""
Readiness checks for the sandbox: container runtime and temp root.
"""

import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)


class HealthMonitor:
    """
    Args:
        client_factory: Returns a docker client; may raise if the runtime is down
        temp_root: Directory that holds per-execution working directories
    """

    def __init__(self, client_factory: Callable[[], Any], temp_root: Union[str, Path]):
        self.client_factory = client_factory
        self.temp_root = Path(temp_root)

    def container_runtime_reachable(self) -> bool:
        try:
            self.client_factory().ping()
            return True
        except Exception as e:
            logger.error(f"Health check failed: container runtime unreachable: {e}")
            return False

    def temp_root_writable(self) -> bool:
        marker = self.temp_root / f".health-check-{uuid.uuid4().hex}"
        try:
            marker.write_text("test", encoding="utf-8")
            marker.unlink()
            return True
        except Exception as e:
            logger.error(f"Health check failed: temp root {self.temp_root} not writable: {e}")
            return False

    def report(self) -> Dict[str, bool]:
        return {
            "container_runtime": self.container_runtime_reachable(),
            "temp_root_writable": self.temp_root_writable(),
        }

    def check(self, report: Optional[Dict[str, bool]] = None) -> bool:
        """True when every check passed. Pass a report to avoid checking again."""
        if report is None:
            report = self.report()
        return bool(report) and all(report.values())
