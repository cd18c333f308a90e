"""Base step interface.

A step is one unit of work a workflow node runs inside an execution. Steps
are invoked through the StepExecutionRecorder, which records their outcome.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx
import structlog

from changewatch.core.errors import ChangewatchError
from changewatch.core.step_recorder import StepContext, StepResult
from changewatch.services.base_data_service import BaseDataService
from changewatch.services.execution_log_service import ExecutionLogService
from changewatch.services.execution_service import ExecutionService
from changewatch.services.integration_service import IntegrationService

logger = structlog.get_logger()

InputT = TypeVar("InputT")


@dataclass
class StepServices:
    """Request-scoped collaborators handed to steps."""

    integrations: IntegrationService
    executions: ExecutionService
    execution_logs: ExecutionLogService
    base_data: BaseDataService
    http_client_factory: Callable[[], httpx.AsyncClient]


class BaseStep(ABC, Generic[InputT]):
    """Abstract base class for workflow steps.

    Subclasses implement:
    - node_type: the identifier workflows reference the step by
    - parse_input(): turn raw input into a typed value
    - execute(): do the work and return the output payload

    Typed failures raised from execute() become failure results; anything
    else propagates to the recorder.

    Example implementation:
        class EchoStep(BaseStep[dict]):
            node_type = "util/echo"

            async def execute(self, input_data, context):
                return {"echo": input_data}
    """

    node_type: str = ""
    display_name: str = ""

    def __init__(self, services: StepServices) -> None:
        self.services = services

    def parse_input(self, raw: dict[str, Any]) -> InputT:
        """Validate raw input.

        Raises:
            ValidationError: If the input is malformed
        """
        return raw  # type: ignore[return-value]

    @abstractmethod
    async def execute(
        self,
        input_data: InputT,
        context: StepContext,
    ) -> dict[str, Any]:
        """Perform the step and return its output payload.

        Raises:
            ChangewatchError: On expected failures
        """

    async def run(
        self,
        input_data: InputT,
        context: StepContext,
    ) -> StepResult:
        """Run the step, converting typed failures into a failure result."""
        try:
            output = await self.execute(input_data, context)
        except ChangewatchError as e:
            logger.info(
                "step_returned_error",
                node_type=self.node_type,
                error_code=e.code,
            )
            return StepResult.fail(e)

        return StepResult.ok(output)
