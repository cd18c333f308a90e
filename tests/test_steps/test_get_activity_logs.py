"""Tests for the Get Activity Logs step."""

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.core.errors import ValidationError
from changewatch.core.step_recorder import StepContext, StepExecutionRecorder
from changewatch.models.execution import Execution, StepStatus
from changewatch.models.integration import Integration
from changewatch.models.user import User
from changewatch.services.execution_log_service import ExecutionLogService
from changewatch.steps.figma.get_activity_logs import NODE_TYPE, GetActivityLogsStep

from conftest import activity_event, build_step_services, fail_on_request

FILE_URL = "https://www.figma.com/design/abc123/Name"


def provider_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "meta": {
                "activity_logs": [
                    activity_event("evt-1"),
                    activity_event("evt-2", file_key="other"),
                    activity_event("evt-3"),
                ],
                "cursor": "c-2",
                "next_page": True,
            }
        },
    )


class TestParseInput:
    """Tests for GetActivityLogsStep.parse_input."""

    @pytest.fixture
    def step(self, db_session: AsyncSession) -> GetActivityLogsStep:
        return GetActivityLogsStep(build_step_services(db_session))

    @pytest.mark.asyncio
    async def test_full_input(self, step: GetActivityLogsStep):
        parsed = step.parse_input(
            {
                "figmaFileUrl": FILE_URL,
                "events": "file_update",
                "dateRange": "90days",
                "limit": "25",
                "order": "asc",
                "integrationId": "int-1",
            }
        )

        assert parsed.figma_file_url == FILE_URL
        assert parsed.date_range == "90days"
        assert parsed.limit == 25
        assert parsed.order == "asc"
        assert parsed.integration_id == "int-1"

    @pytest.mark.asyncio
    async def test_missing_url(self, step: GetActivityLogsStep):
        with pytest.raises(ValidationError, match="Figma File URL is required"):
            step.parse_input({"figmaFileUrl": ""})

    @pytest.mark.asyncio
    async def test_unknown_date_range_falls_back(self, step: GetActivityLogsStep):
        parsed = step.parse_input({"figmaFileUrl": FILE_URL, "dateRange": "1year"})
        assert parsed.date_range is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 1001, "many"])
    async def test_invalid_limit(self, step: GetActivityLogsStep, limit):
        with pytest.raises(ValidationError, match="Limit"):
            step.parse_input({"figmaFileUrl": FILE_URL, "limit": limit})

    @pytest.mark.asyncio
    async def test_invalid_order(self, step: GetActivityLogsStep):
        with pytest.raises(ValidationError, match="Order"):
            step.parse_input({"figmaFileUrl": FILE_URL, "order": "sideways"})


class TestGetActivityLogsStep:
    """Tests for running the step through the recorder."""

    @pytest.mark.asyncio
    async def test_fetches_file_events(
        self,
        db_session: AsyncSession,
        test_execution: Execution,
        figma_integration: Integration,
        test_user: User,
    ):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return provider_page(request)

        services = build_step_services(db_session, handler)
        context = StepContext(test_execution.id, "fetch-1", NODE_TYPE, test_user.id)

        result = await StepExecutionRecorder(services.execution_logs).record(
            context,
            GetActivityLogsStep(services),
            {"figmaFileUrl": FILE_URL, "integrationId": figma_integration.id},
        )

        assert result.success
        output = result.to_output()
        assert [e["id"] for e in output["logs"]] == ["evt-1", "evt-3"]
        assert output["count"] == 2
        assert output["hasMore"] is True
        assert output["cursor"] == "c-2"
        assert seen[0].headers["Authorization"] == "Bearer access-1"

        logs = await ExecutionLogService(db_session).list_for_execution(test_execution.id)
        assert len(logs) == 1
        assert logs[0].status == StepStatus.SUCCESS
        assert logs[0].get_output_data() == output

    @pytest.mark.asyncio
    async def test_expired_token_is_a_recorded_failure(
        self,
        db_session: AsyncSession,
        test_execution: Execution,
        figma_integration: Integration,
        test_user: User,
    ):
        services = build_step_services(db_session, lambda r: httpx.Response(401))
        context = StepContext(test_execution.id, "fetch-1", NODE_TYPE, test_user.id)

        result = await StepExecutionRecorder(services.execution_logs).record(
            context,
            GetActivityLogsStep(services),
            {"figmaFileUrl": FILE_URL, "integrationId": figma_integration.id},
        )

        assert not result.success
        assert result.error_code == "auth_expired"
        assert "reconnect" in result.error

        logs = await ExecutionLogService(db_session).list_for_execution(test_execution.id)
        assert len(logs) == 1
        assert logs[0].status == StepStatus.ERROR
        assert logs[0].error == result.error

    @pytest.mark.asyncio
    async def test_without_integration_is_config_failure(
        self,
        db_session: AsyncSession,
        test_execution: Execution,
        test_user: User,
    ):
        services = build_step_services(db_session, fail_on_request)
        context = StepContext(test_execution.id, "fetch-1", NODE_TYPE, test_user.id)

        result = await StepExecutionRecorder(services.execution_logs).record(
            context, GetActivityLogsStep(services), {"figmaFileUrl": FILE_URL}
        )

        assert not result.success
        assert result.error_code == "config_error"

    @pytest.mark.asyncio
    async def test_invalid_url_never_calls_provider(
        self,
        db_session: AsyncSession,
        test_execution: Execution,
        figma_integration: Integration,
        test_user: User,
    ):
        services = build_step_services(db_session, fail_on_request)
        context = StepContext(test_execution.id, "fetch-1", NODE_TYPE, test_user.id)

        result = await StepExecutionRecorder(services.execution_logs).record(
            context,
            GetActivityLogsStep(services),
            {
                "figmaFileUrl": "https://www.figma.com/proto/abc123",
                "integrationId": figma_integration.id,
            },
        )

        assert not result.success
        assert result.error_code == "validation_error"
