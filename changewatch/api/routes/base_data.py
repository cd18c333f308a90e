"""Base data routes.

Baseline snapshots of a workflow: list, create, read, replace, delete, and
remove single entries.
"""

import structlog
from fastapi import APIRouter, status

from changewatch.api.deps import BaseDataServiceDep, CurrentUser
from changewatch.models.base_data import (
    BaseDataCreate,
    BaseDataRead,
    BaseDataSummary,
    BaseDataUpdate,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/workflows/{workflow_id}/base-data", tags=["base-data"])


@router.get(
    "",
    summary="List base data",
    description="List a workflow's baseline snapshots, newest first, without records.",
)
async def list_base_data(
    workflow_id: str,
    user: CurrentUser,
    base_data_service: BaseDataServiceDep,
) -> list[BaseDataSummary]:
    return await base_data_service.list(workflow_id, user.id)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create base data",
)
async def create_base_data(
    workflow_id: str,
    data: BaseDataCreate,
    user: CurrentUser,
    base_data_service: BaseDataServiceDep,
) -> BaseDataRead:
    """Snapshot records as a new baseline."""
    base_data = await base_data_service.create(workflow_id, user.id, data)
    return BaseDataRead.from_entity(base_data)


@router.get(
    "/{base_data_id}",
    summary="Get base data",
)
async def get_base_data(
    workflow_id: str,
    base_data_id: str,
    user: CurrentUser,
    base_data_service: BaseDataServiceDep,
) -> BaseDataRead:
    base_data = await base_data_service.get(workflow_id, user.id, base_data_id)
    return BaseDataRead.from_entity(base_data)


@router.patch(
    "/{base_data_id}",
    summary="Replace base data records",
)
async def update_base_data(
    workflow_id: str,
    base_data_id: str,
    data: BaseDataUpdate,
    user: CurrentUser,
    base_data_service: BaseDataServiceDep,
) -> BaseDataRead:
    base_data = await base_data_service.update(workflow_id, user.id, base_data_id, data)
    return BaseDataRead.from_entity(base_data)


@router.delete(
    "/{base_data_id}",
    summary="Delete base data",
)
async def delete_base_data(
    workflow_id: str,
    base_data_id: str,
    user: CurrentUser,
    base_data_service: BaseDataServiceDep,
) -> dict[str, bool]:
    await base_data_service.delete(workflow_id, user.id, base_data_id)
    return {"success": True}


@router.delete(
    "/{base_data_id}/entries/{entry_id}",
    summary="Delete one base data entry",
)
async def delete_base_data_entry(
    workflow_id: str,
    base_data_id: str,
    entry_id: str,
    user: CurrentUser,
    base_data_service: BaseDataServiceDep,
) -> BaseDataRead:
    base_data = await base_data_service.delete_entry(
        workflow_id, user.id, base_data_id, entry_id
    )
    return BaseDataRead.from_entity(base_data)
