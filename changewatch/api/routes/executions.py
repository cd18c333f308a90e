"""Execution API endpoints.

Create executions, run registered steps inside them, and read the recorded
step trace.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Query, status

from changewatch.api.deps import (
    CurrentUser,
    ExecutionLogServiceDep,
    ExecutionServiceDep,
    StepRecorderDep,
    StepRegistryDep,
    StepServicesDep,
)
from changewatch.core.step_recorder import StepContext
from changewatch.models.execution import (
    ExecutionCreate,
    ExecutionRead,
    ExecutionStepLogRead,
    StepRunRequest,
    StepStatus,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/executions", tags=["executions"])


@router.post("", response_model=ExecutionRead, status_code=status.HTTP_201_CREATED)
async def create_execution(
    user: CurrentUser,
    service: ExecutionServiceDep,
    data: ExecutionCreate,
) -> ExecutionRead:
    """Create an execution for a workflow the user owns."""
    execution = await service.create(user.id, data)
    return ExecutionRead.model_validate(execution)


@router.get("/{execution_id}/logs", response_model=list[ExecutionStepLogRead])
async def list_execution_logs(
    execution_id: str,
    user: CurrentUser,
    service: ExecutionServiceDep,
    log_service: ExecutionLogServiceDep,
    node_type: Annotated[str | None, Query()] = None,
    status_filter: Annotated[StepStatus | None, Query(alias="status")] = None,
) -> list[ExecutionStepLogRead]:
    """Get the recorded step trace of an execution, oldest first."""
    await service.get(execution_id, user.id)

    logs = await log_service.list_for_execution(
        execution_id,
        node_type=node_type,
        status=status_filter,
    )
    return [ExecutionStepLogRead.from_entity(log) for log in logs]


@router.post("/{execution_id}/steps")
async def run_step(
    execution_id: str,
    data: StepRunRequest,
    user: CurrentUser,
    service: ExecutionServiceDep,
    recorder: StepRecorderDep,
    registry: StepRegistryDep,
    step_services: StepServicesDep,
) -> dict[str, Any]:
    """Run a registered step inside the execution and record it.

    Returns the step's output payload: ``{"success": true, ...}`` or
    ``{"success": false, "error": ..., "errorCode": ...}``.
    """
    await service.get(execution_id, user.id)
    step = registry.create(data.node_type, step_services)

    context = StepContext(
        execution_id=execution_id,
        node_id=data.node_id,
        node_type=data.node_type,
        user_id=user.id,
    )
    result = await recorder.record(context, step, data.input)

    return result.to_output()
