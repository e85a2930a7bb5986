from abc import ABC, abstractmethod

from code_sandbox.execution.environments import ExecutionEnvironment
from code_sandbox.execution.models import ExecutionRequest, RunOutcome


class ExecutionService(ABC):
    @abstractmethod
    async def execute_code(
        self,
        execution_id: str,
        request: ExecutionRequest,
        environment: ExecutionEnvironment,
    ) -> RunOutcome:
        """
        Execute code in a sandboxed environment.

        Failures of the user's code are reported through the returned
        RunOutcome. Infrastructure failures raise InfrastructureError.
        """
        pass
