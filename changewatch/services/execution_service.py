"""Execution service.

Creates executions and resolves them back to their workflow. Scheduling
steps inside an execution is the orchestrator's concern.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.core.errors import NotFoundError
from changewatch.models.execution import (
    Execution,
    ExecutionCreate,
    ExecutionStatus,
)
from changewatch.services.workflow_service import WorkflowService

logger = structlog.get_logger()


class ExecutionService:
    """Service for managing executions.

    Example usage:
        service = ExecutionService(session, workflow_service)
        execution = await service.create("user-123", ExecutionCreate(workflow_id="wf-1"))
        workflow_id = await service.resolve_workflow_id(execution.id)
    """

    def __init__(
        self,
        session: AsyncSession,
        workflow_service: WorkflowService,
    ) -> None:
        self._session = session
        self._workflow_service = workflow_service

    async def create(
        self,
        user_id: str,
        data: ExecutionCreate,
    ) -> Execution:
        """Create a running execution for a workflow the user owns.

        Raises:
            NotFoundError: If the workflow doesn't exist
        """
        await self._workflow_service.get(data.workflow_id, user_id)

        execution = Execution(
            workflow_id=data.workflow_id,
            user_id=user_id,
            status=ExecutionStatus.RUNNING,
        )

        self._session.add(execution)
        await self._session.commit()
        await self._session.refresh(execution)

        logger.info(
            "execution_created",
            execution_id=execution.id,
            workflow_id=data.workflow_id,
            user_id=user_id,
        )

        return execution

    async def get(
        self,
        execution_id: str,
        user_id: str | None = None,
    ) -> Execution:
        """Get an execution, optionally checking ownership.

        Raises:
            NotFoundError: If it doesn't exist or belongs to someone else
        """
        query = select(Execution).where(Execution.id == execution_id)
        result = await self._session.execute(query)
        execution = result.scalar_one_or_none()

        if execution is None:
            raise NotFoundError("Execution not found")

        if user_id is not None and execution.user_id != user_id:
            logger.warning(
                "execution_access_denied",
                execution_id=execution_id,
                requested_by=user_id,
            )
            raise NotFoundError("Execution not found")

        return execution

    async def resolve_workflow_id(self, execution_id: str) -> str:
        """Get the workflow an execution belongs to.

        Raises:
            NotFoundError: If the execution doesn't exist
        """
        execution = await self.get(execution_id)
        return execution.workflow_id
