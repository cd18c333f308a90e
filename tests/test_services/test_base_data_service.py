"""Tests for baseline snapshot management."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.core.errors import NotFoundError
from changewatch.models.base_data import BaseDataCreate, BaseDataUpdate
from changewatch.models.user import User
from changewatch.models.workflow import Workflow
from changewatch.services.base_data_service import BaseDataService
from changewatch.services.workflow_service import WorkflowService

from conftest import activity_event


@pytest.fixture
def service(db_session: AsyncSession) -> BaseDataService:
    return BaseDataService(db_session, WorkflowService(db_session))


class TestBaseDataService:
    """Tests for BaseDataService."""

    @pytest.mark.asyncio
    async def test_create_dedupes_records(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        records = [activity_event("1"), activity_event("2"), activity_event("1")]

        snapshot = await service.create(
            test_workflow.id,
            test_user.id,
            BaseDataCreate(name="Before release", data=records),
        )

        assert snapshot.workflow_id == test_workflow.id
        assert [r["id"] for r in snapshot.get_data()] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_list_returns_summaries(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        for name in ("first", "second"):
            await service.create(
                test_workflow.id, test_user.id, BaseDataCreate(name=name, data=[])
            )

        summaries = await service.list(test_workflow.id, test_user.id)

        assert {s.name for s in summaries} == {"first", "second"}
        assert "data" not in summaries[0].model_dump(by_alias=True)

    @pytest.mark.asyncio
    async def test_other_user_cannot_see_snapshots(
        self,
        service: BaseDataService,
        test_workflow: Workflow,
        test_user: User,
        other_user: User,
    ):
        snapshot = await service.create(
            test_workflow.id, test_user.id, BaseDataCreate(name="mine", data=[])
        )

        with pytest.raises(NotFoundError, match="Workflow not found"):
            await service.list(test_workflow.id, other_user.id)
        with pytest.raises(NotFoundError):
            await service.get(test_workflow.id, other_user.id, snapshot.id)

    @pytest.mark.asyncio
    async def test_update_replaces_records(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        snapshot = await service.create(
            test_workflow.id,
            test_user.id,
            BaseDataCreate(name="baseline", data=[activity_event("1")]),
        )

        updated = await service.update(
            test_workflow.id,
            test_user.id,
            snapshot.id,
            BaseDataUpdate(data=[activity_event("2"), activity_event("2")]),
        )

        assert [r["id"] for r in updated.get_data()] == ["2"]

    @pytest.mark.asyncio
    async def test_update_without_data_keeps_records(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        snapshot = await service.create(
            test_workflow.id,
            test_user.id,
            BaseDataCreate(name="baseline", data=[activity_event("1")]),
        )

        updated = await service.update(
            test_workflow.id, test_user.id, snapshot.id, BaseDataUpdate()
        )

        assert [r["id"] for r in updated.get_data()] == ["1"]

    @pytest.mark.asyncio
    async def test_delete_entry(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        snapshot = await service.create(
            test_workflow.id,
            test_user.id,
            BaseDataCreate(
                name="baseline",
                data=[activity_event("1"), activity_event("2"), {"id": 3}],
            ),
        )

        updated = await service.delete_entry(test_workflow.id, test_user.id, snapshot.id, "1")
        assert [r["id"] for r in updated.get_data()] == ["2", 3]

        updated = await service.delete_entry(test_workflow.id, test_user.id, snapshot.id, "3")
        assert [r["id"] for r in updated.get_data()] == ["2"]

    @pytest.mark.asyncio
    async def test_delete_missing_entry(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        snapshot = await service.create(
            test_workflow.id,
            test_user.id,
            BaseDataCreate(name="baseline", data=[activity_event("1")]),
        )

        with pytest.raises(NotFoundError, match="Entry not found"):
            await service.delete_entry(test_workflow.id, test_user.id, snapshot.id, "404")

    @pytest.mark.asyncio
    async def test_delete(
        self, service: BaseDataService, test_workflow: Workflow, test_user: User
    ):
        snapshot = await service.create(
            test_workflow.id, test_user.id, BaseDataCreate(name="baseline", data=[])
        )

        await service.delete(test_workflow.id, test_user.id, snapshot.id)

        with pytest.raises(NotFoundError, match="Base data not found"):
            await service.get_unscoped(snapshot.id)
