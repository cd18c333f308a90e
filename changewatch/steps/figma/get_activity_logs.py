"""Figma "Get Activity Logs" step.

Fetches one page of organization activity logs and keeps the events of a
single file. The stored access token is used as-is; refreshing it is an
explicit operation of the OAuth service.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from changewatch.core.errors import ValidationError
from changewatch.core.step_recorder import StepContext
from changewatch.integrations.figma.activity import FigmaActivityClient
from changewatch.models.activity import DATE_RANGE_DAYS
from changewatch.models.integration import FigmaConfig, ProviderConfig
from changewatch.steps.base import BaseStep

logger = structlog.get_logger()

NODE_TYPE = "figma/get-activity-logs"
MAX_LIMIT = 1000


@dataclass
class GetActivityLogsInput:
    """Input for the get activity logs step."""

    figma_file_url: str
    events: str | None = None
    date_range: str | None = None
    limit: int | None = None
    order: str | None = None
    cursor: str | None = None
    integration_id: str | None = None


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    return str(value)


class GetActivityLogsStep(BaseStep[GetActivityLogsInput]):
    """Fetch file-scoped activity logs from Figma.

    Output:
        {"logs": [...], "count": n, "hasMore": bool, "cursor": "..."}
    """

    node_type = NODE_TYPE
    display_name = "Get Activity Logs"

    def parse_input(self, raw: dict[str, Any]) -> GetActivityLogsInput:
        file_url = _optional_str(raw, "figmaFileUrl")
        if not file_url:
            raise ValidationError("Figma File URL is required")

        date_range = _optional_str(raw, "dateRange")
        if date_range not in DATE_RANGE_DAYS:
            date_range = None

        limit = raw.get("limit")
        if limit in (None, ""):
            limit = None
        else:
            try:
                limit = int(limit)
            except (TypeError, ValueError) as e:
                raise ValidationError("Limit must be a number") from e
            if not 1 <= limit <= MAX_LIMIT:
                raise ValidationError(f"Limit must be between 1 and {MAX_LIMIT}")

        order = _optional_str(raw, "order")
        if order is not None and order not in ("asc", "desc"):
            raise ValidationError("Order must be 'asc' or 'desc'")

        return GetActivityLogsInput(
            figma_file_url=file_url,
            events=_optional_str(raw, "events"),
            date_range=date_range,
            limit=limit,
            order=order,
            cursor=_optional_str(raw, "cursor"),
            integration_id=_optional_str(raw, "integrationId"),
        )

    async def _load_config(
        self,
        integration_id: str | None,
        user_id: str | None,
    ) -> ProviderConfig:
        if not integration_id:
            return FigmaConfig()
        return await self.services.integrations.get_config(integration_id, user_id or "")

    async def execute(
        self,
        input_data: GetActivityLogsInput,
        context: StepContext,
    ) -> dict[str, Any]:
        config = await self._load_config(input_data.integration_id, context.user_id)

        async with self.services.http_client_factory() as http:
            result = await FigmaActivityClient(http).fetch(
                file_url=input_data.figma_file_url,
                access_token=config.access_token,
                events=input_data.events,
                date_range=input_data.date_range,
                limit=input_data.limit,
                order=input_data.order,
                cursor=input_data.cursor,
            )

        return result.model_dump(by_alias=True, exclude_none=True)
