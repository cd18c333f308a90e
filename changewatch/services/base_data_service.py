"""Base data service.

Baseline snapshots are owned by a workflow; every route-facing call first
checks that the workflow belongs to the requesting user. Writes keep the
stored records unique by id.
"""

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.core.change_detector import dedupe_by_id
from changewatch.core.errors import NotFoundError
from changewatch.models.base_data import (
    BaseData,
    BaseDataCreate,
    BaseDataSummary,
    BaseDataUpdate,
    utc_now,
)
from changewatch.services.workflow_service import WorkflowService

logger = structlog.get_logger()


class BaseDataService:
    """Service for managing baseline snapshots.

    Example usage:
        service = BaseDataService(session, WorkflowService(session))

        snapshot = await service.create(
            workflow_id="wf-1",
            user_id="user-123",
            data=BaseDataCreate(name="Before release", data=fetch_output["logs"]),
        )
        await service.delete_entry("wf-1", "user-123", snapshot.id, "evt-42")
    """

    def __init__(
        self,
        session: AsyncSession,
        workflow_service: WorkflowService,
    ) -> None:
        self._session = session
        self._workflow_service = workflow_service

    async def list(
        self,
        workflow_id: str,
        user_id: str,
    ) -> list[BaseDataSummary]:
        """List a workflow's snapshots, newest first, without records."""
        await self._workflow_service.get(workflow_id, user_id)

        query = (
            select(BaseData)
            .where(BaseData.workflow_id == workflow_id)
            .order_by(BaseData.created_at.desc())
        )
        result = await self._session.execute(query)

        return [
            BaseDataSummary(id=row.id, name=row.name, created_at=row.created_at)
            for row in result.scalars().all()
        ]

    async def create(
        self,
        workflow_id: str,
        user_id: str,
        data: BaseDataCreate,
    ) -> BaseData:
        """Snapshot records into a new baseline."""
        await self._workflow_service.get(workflow_id, user_id)

        base_data = BaseData(workflow_id=workflow_id, name=data.name)
        records = dedupe_by_id(data.data)
        base_data.set_data(records)

        self._session.add(base_data)
        await self._session.commit()
        await self._session.refresh(base_data)

        logger.info(
            "base_data_created",
            base_data_id=base_data.id,
            workflow_id=workflow_id,
            record_count=len(records),
            dropped_duplicates=len(data.data) - len(records),
        )

        return base_data

    async def get(
        self,
        workflow_id: str,
        user_id: str,
        base_data_id: str,
    ) -> BaseData:
        """Get a snapshot of an owned workflow.

        Raises:
            NotFoundError: If the workflow or the snapshot doesn't exist
        """
        await self._workflow_service.get(workflow_id, user_id)

        query = select(BaseData).where(
            BaseData.id == base_data_id,
            BaseData.workflow_id == workflow_id,
        )
        result = await self._session.execute(query)
        base_data = result.scalar_one_or_none()

        if base_data is None:
            raise NotFoundError("Base data not found")

        return base_data

    async def get_unscoped(self, base_data_id: str) -> BaseData:
        """Get a snapshot by id alone; callers check the workflow themselves.

        Raises:
            NotFoundError: If the snapshot doesn't exist
        """
        base_data = await self._session.get(BaseData, base_data_id)
        if base_data is None:
            raise NotFoundError("Base data not found")
        return base_data

    async def update(
        self,
        workflow_id: str,
        user_id: str,
        base_data_id: str,
        data: BaseDataUpdate,
    ) -> BaseData:
        """Replace a snapshot's records."""
        base_data = await self.get(workflow_id, user_id, base_data_id)

        if data.data is not None:
            base_data.set_data(dedupe_by_id(data.data))
        base_data.updated_at = utc_now()

        await self._session.commit()
        await self._session.refresh(base_data)

        logger.info(
            "base_data_updated",
            base_data_id=base_data_id,
            workflow_id=workflow_id,
        )

        return base_data

    async def delete(
        self,
        workflow_id: str,
        user_id: str,
        base_data_id: str,
    ) -> None:
        """Delete a snapshot."""
        base_data = await self.get(workflow_id, user_id, base_data_id)

        await self._session.delete(base_data)
        await self._session.commit()

        logger.info(
            "base_data_deleted",
            base_data_id=base_data_id,
            workflow_id=workflow_id,
        )

    async def delete_entry(
        self,
        workflow_id: str,
        user_id: str,
        base_data_id: str,
        entry_id: str,
    ) -> BaseData:
        """Remove a single record from a snapshot.

        Raises:
            NotFoundError: If no record with that id is stored
        """
        base_data = await self.get(workflow_id, user_id, base_data_id)
        records = base_data.get_data()
        if not isinstance(records, list):
            records = []

        remaining: list[Any] = [
            record
            for record in records
            if not (isinstance(record, Mapping) and str(record.get("id")) == entry_id)
        ]
        if len(remaining) == len(records):
            raise NotFoundError("Entry not found")

        base_data.set_data(remaining)
        base_data.updated_at = utc_now()
        await self._session.commit()
        await self._session.refresh(base_data)

        logger.info(
            "base_data_entry_deleted",
            base_data_id=base_data_id,
            workflow_id=workflow_id,
            entry_id=entry_id,
        )

        return base_data
