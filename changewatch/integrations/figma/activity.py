"""Figma activity log client.

The activity log endpoint is organization-scoped, so every page is filtered
down to the events of a single file after it arrives. One call fetches one
page; walking further pages with the returned cursor is the caller's job.
"""

import time
from typing import Any
from urllib.parse import urlparse

import httpx
import structlog

from changewatch.config import settings
from changewatch.core.errors import (
    AuthExpiredError,
    ConfigError,
    ProviderPermissionError,
    TransportError,
    UpstreamError,
    ValidationError,
)
from changewatch.models.activity import DATE_RANGE_DAYS, DEFAULT_RANGE_DAYS, FetchResult

logger = structlog.get_logger()

SECONDS_PER_DAY = 24 * 60 * 60

RECONNECT_MESSAGE = (
    "Invalid or expired access token. Please reconnect your Figma account."
)
PERMISSION_MESSAGE = (
    "Access denied. Ensure your organization is on Enterprise plan "
    "with Activity Logs API access."
)


def extract_file_key(url: str) -> str:
    """Extract the file key from a Figma file URL.

    Supports formats:
    - https://www.figma.com/file/FILE_KEY/...
    - https://www.figma.com/design/FILE_KEY/...

    Raises:
        ValidationError: If the URL is empty or has neither shape
    """
    if not url:
        raise ValidationError("Figma File URL is required")

    try:
        path = urlparse(url).path
    except ValueError as e:
        raise ValidationError(f"Invalid Figma URL: {url}") from e

    parts = path.split("/")
    if len(parts) > 2 and parts[1] in ("file", "design") and parts[2]:
        return parts[2]

    raise ValidationError(
        "Invalid Figma URL. Please provide a valid Figma file URL like: "
        "https://www.figma.com/design/FILE_KEY/..."
    )


def derive_time_window(
    date_range: str | None,
    now: int | None = None,
) -> tuple[int, int]:
    """Derive ``(start_time, end_time)`` in epoch seconds.

    Unset or unrecognized ranges fall back to seven days.
    """
    end_time = int(time.time()) if now is None else now
    days = DATE_RANGE_DAYS.get(date_range or "", DEFAULT_RANGE_DAYS)
    return end_time - days * SECONDS_PER_DAY, end_time


def filter_by_file_key(
    events: list[Any],
    file_key: str,
) -> list[dict[str, Any]]:
    """Keep events whose ``action.details.main_file_key`` equals ``file_key``."""
    matched = []
    for event in events:
        if not isinstance(event, dict):
            continue
        action = event.get("action")
        details = action.get("details") if isinstance(action, dict) else None
        if isinstance(details, dict) and details.get("main_file_key") == file_key:
            matched.append(event)
    return matched


def raise_for_provider_status(response: httpx.Response) -> None:
    """Map a non-2xx provider response onto the error taxonomy."""
    if response.is_success:
        return

    if response.status_code == 401:
        raise AuthExpiredError(RECONNECT_MESSAGE)
    if response.status_code == 403:
        raise ProviderPermissionError(PERMISSION_MESSAGE)

    message = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        message = str(body["error"])
        if body.get("message"):
            message = f"{message}: {body['message']}"

    raise UpstreamError(message, upstream_status=response.status_code)


class FigmaActivityClient:
    """Client for the Figma activity log endpoint.

    Example usage:
        async with httpx.AsyncClient() as http:
            client = FigmaActivityClient(http)
            page = await client.fetch(
                file_url="https://www.figma.com/design/abc123/Name",
                access_token=token,
                date_range="30days",
            )
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base_url: str | None = None,
    ) -> None:
        self._client = client
        self._api_base_url = (api_base_url or settings.figma_api_base_url).rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self._api_base_url}/v1/activity_logs"

    async def fetch(
        self,
        file_url: str,
        access_token: str | None,
        events: str | None = None,
        date_range: str | None = None,
        limit: int | None = None,
        order: str | None = None,
        cursor: str | None = None,
        now: int | None = None,
    ) -> FetchResult:
        """Fetch one page of activity logs for a file.

        Raises:
            ConfigError: If no access token is stored
            ValidationError: If the file URL is malformed
            AuthExpiredError: On HTTP 401
            ProviderPermissionError: On HTTP 403
            UpstreamError: On any other non-2xx status
            TransportError: On network or parse failures
        """
        if not access_token:
            raise ConfigError(
                "Figma access token is not configured. "
                "Please reconnect your account to complete OAuth authentication."
            )

        file_key = extract_file_key(file_url)
        start_time, end_time = derive_time_window(date_range, now)

        params: dict[str, str] = {}
        if events:
            params["events"] = events
        params["start_time"] = str(start_time)
        params["end_time"] = str(end_time)
        if limit:
            params["limit"] = str(limit)
        if order:
            params["order"] = order
        if cursor:
            params["cursor"] = cursor

        try:
            response = await self._client.get(
                self.endpoint,
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=settings.http_timeout,
            )
        except httpx.HTTPError as e:
            logger.error(
                "figma_activity_logs_http_error",
                file_key=file_key,
                error=str(e),
            )
            raise TransportError(f"Failed to fetch activity logs: {e}") from e

        raise_for_provider_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                "Failed to fetch activity logs: response is not valid JSON"
            ) from e

        meta = data.get("meta") if isinstance(data, dict) else None
        meta = meta if isinstance(meta, dict) else {}
        all_logs = meta.get("activity_logs") or []
        logs = filter_by_file_key(all_logs, file_key)
        next_cursor = meta.get("cursor")

        logger.info(
            "figma_activity_logs_fetched",
            file_key=file_key,
            received=len(all_logs),
            matched=len(logs),
            has_more=bool(meta.get("next_page")),
        )

        return FetchResult(
            logs=logs,
            count=len(logs),
            has_more=bool(meta.get("next_page")),
            cursor=str(next_cursor) if next_cursor is not None else None,
        )
