"""Figma "Detect Change" step.

Compares the logs of the latest successful "Get Activity Logs" step in the
same execution with a baseline snapshot and reports the events the baseline
does not contain.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from changewatch.core.change_detector import compute_new_items
from changewatch.core.errors import NotFoundError, OwnershipError, ValidationError
from changewatch.core.step_recorder import StepContext
from changewatch.models.activity import DeltaResult
from changewatch.steps.base import BaseStep
from changewatch.steps.figma.get_activity_logs import NODE_TYPE as FETCH_NODE_TYPE

logger = structlog.get_logger()


@dataclass
class DetectChangeInput:
    """Input for the detect change step."""

    base_data_id: str


class DetectChangeStep(BaseStep[DetectChangeInput]):
    """Diff the latest fetched logs against a baseline snapshot.

    Output:
        {"newItems": [...], "count": n}
    """

    node_type = "figma/detect-change"
    display_name = "Detect Change"

    def parse_input(self, raw: dict[str, Any]) -> DetectChangeInput:
        base_data_id = raw.get("baseDataId")
        if not base_data_id:
            raise ValidationError("Base data ID is required")
        return DetectChangeInput(base_data_id=str(base_data_id))

    async def detect(
        self,
        execution_id: str,
        current_node_id: str | None,
        base_data_id: str,
    ) -> DeltaResult:
        """Compute the events missing from the baseline.

        Raises:
            ValidationError: If an id is missing or the baseline is malformed
            NotFoundError: If the execution, fetch output or baseline is absent
            OwnershipError: If the baseline belongs to another workflow
        """
        if not base_data_id:
            raise ValidationError("Base data ID is required")
        if not execution_id:
            raise ValidationError("Execution ID is required")

        workflow_id = await self.services.executions.resolve_workflow_id(execution_id)

        previous = await self.services.execution_logs.find_latest(
            execution_id,
            FETCH_NODE_TYPE,
            exclude_node_id=current_node_id,
        )
        output = previous.get_output_data() if previous is not None else None
        if not output:
            raise NotFoundError(
                "No previous 'Get Activity Logs' node output found. Make sure to "
                "add a 'Get Activity Logs' node before this step and run the workflow."
            )

        current_logs = output.get("logs") if isinstance(output, dict) else None
        if not isinstance(current_logs, list):
            raise NotFoundError(
                "Previous 'Get Activity Logs' node output does not contain a "
                "'logs' array. Make sure the previous node completed successfully."
            )

        base_data = await self.services.base_data.get_unscoped(base_data_id)
        if base_data.workflow_id != workflow_id:
            raise OwnershipError("Base data does not belong to this workflow")

        baseline = base_data.get_data()
        if not isinstance(baseline, list):
            raise ValidationError("Base data has invalid format")

        new_items = compute_new_items(current_logs, baseline)

        logger.info(
            "change_detected",
            base_data_id=base_data_id,
            fetched=len(current_logs),
            baseline_size=len(baseline),
            new_items=len(new_items),
        )

        return DeltaResult(new_items=new_items, count=len(new_items))

    async def execute(
        self,
        input_data: DetectChangeInput,
        context: StepContext,
    ) -> dict[str, Any]:
        delta = await self.detect(
            context.execution_id,
            context.node_id,
            input_data.base_data_id,
        )
        return delta.model_dump(by_alias=True)
