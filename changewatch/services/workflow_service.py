"""Workflow service.

Workflows are edited elsewhere; this service only resolves them for
ownership checks.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.core.errors import NotFoundError
from changewatch.models.workflow import Workflow

logger = structlog.get_logger()


class WorkflowService:
    """Service for looking up workflows."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, workflow_id: str, user_id: str) -> Workflow:
        """Get a workflow owned by the user.

        Raises:
            NotFoundError: If it doesn't exist or belongs to someone else
        """
        query = select(Workflow).where(
            Workflow.id == workflow_id,
            Workflow.user_id == user_id,
        )
        result = await self._session.execute(query)
        workflow = result.scalar_one_or_none()

        if workflow is None:
            raise NotFoundError("Workflow not found")

        return workflow
