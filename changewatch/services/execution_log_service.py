"""Execution step log persistence.

Stores the rows written by the step recorder and answers the trace queries
change detection and the API need.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.models.execution import ExecutionStepLog, StepStatus

logger = structlog.get_logger()


class ExecutionLogService:
    """Append-only store of ExecutionStepLog rows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, log: ExecutionStepLog) -> ExecutionStepLog:
        """Persist one step log row."""
        try:
            self._session.add(log)
            await self._session.commit()
        except SQLAlchemyError:
            await self._session.rollback()
            raise

        return log

    async def find_latest(
        self,
        execution_id: str,
        node_type: str,
        status: StepStatus = StepStatus.SUCCESS,
        exclude_node_id: str | None = None,
    ) -> ExecutionStepLog | None:
        """Most recent row of a node type in an execution.

        Args:
            execution_id: Execution to search
            node_type: Step type to match
            status: Step outcome to match
            exclude_node_id: Skip rows written by this node

        Returns:
            The newest matching row or None
        """
        query = select(ExecutionStepLog).where(
            ExecutionStepLog.execution_id == execution_id,
            ExecutionStepLog.node_type == node_type,
            ExecutionStepLog.status == status,
        )
        if exclude_node_id:
            query = query.where(ExecutionStepLog.node_id != exclude_node_id)

        query = query.order_by(ExecutionStepLog.timestamp.desc()).limit(1)
        result = await self._session.execute(query)
        return result.scalars().first()

    async def list_for_execution(
        self,
        execution_id: str,
        node_type: str | None = None,
        status: StepStatus | None = None,
    ) -> list[ExecutionStepLog]:
        """All rows of an execution, oldest first."""
        query = select(ExecutionStepLog).where(
            ExecutionStepLog.execution_id == execution_id
        )
        if node_type:
            query = query.where(ExecutionStepLog.node_type == node_type)
        if status:
            query = query.where(ExecutionStepLog.status == status)

        query = query.order_by(ExecutionStepLog.timestamp.asc())
        result = await self._session.execute(query)
        return list(result.scalars().all())
