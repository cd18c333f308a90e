"""Activity log event and step result shapes.

Events come from the provider verbatim and are passed through as JSON
objects; the models here document the fields the service relies on.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from changewatch.models.execution import CamelModel

DateRange = Literal["7days", "30days", "90days"]
SortOrder = Literal["asc", "desc"]

DATE_RANGE_DAYS: dict[str, int] = {
    "7days": 7,
    "30days": 30,
    "90days": 90,
}
DEFAULT_RANGE_DAYS = 7


class ActivityAction(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    details: dict[str, Any] = Field(default_factory=dict)


class ActivityLogEvent(BaseModel):
    """One provider activity log entry.

    ``action.details.main_file_key`` correlates the event with a file.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    timestamp: int
    action: ActivityAction
    actor: dict[str, Any] | None = None
    entity: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] | None = None

    @property
    def main_file_key(self) -> str | None:
        return self.action.details.get("main_file_key")


class FetchResult(CamelModel):
    """One page of file-scoped activity logs."""

    logs: list[dict[str, Any]]
    count: int
    has_more: bool = False
    cursor: str | None = None


class DeltaResult(CamelModel):
    """Records present in the latest fetch but absent from the baseline."""

    new_items: list[Any]
    count: int
