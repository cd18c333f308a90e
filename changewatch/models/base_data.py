"""Baseline snapshot ("base data") model.

A named, persisted copy of previously seen records, owned by a workflow and
used as the reference set for change detection. ``data`` is stored as a
JSON array whose entries are unique by ``id``.
"""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import Field as PydanticField, field_validator
from sqlmodel import Column, Field, SQLModel, Text

from changewatch.models.execution import CamelModel


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class BaseData(SQLModel, table=True):
    """Baseline snapshot database entity."""

    __tablename__ = "base_data"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
    )
    workflow_id: str = Field(
        foreign_key="workflow.id",
        index=True,
        description="Owning workflow",
    )
    name: str = Field(max_length=255, min_length=1)
    data: str = Field(
        default="[]",
        sa_column=Column(Text, nullable=False),
        description="JSON array of event-shaped records",
    )
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)

    def get_data(self) -> Any:
        """Parse and return the stored records.

        Returns whatever JSON value is stored so callers can reject
        snapshots whose data is not a list.
        """
        return json.loads(self.data)

    def set_data(self, records: list[Any]) -> None:
        """Replace the stored records."""
        self.data = json.dumps(records)


class BaseDataCreate(CamelModel):
    """Schema for snapshotting records into a new baseline."""

    name: str
    data: list[Any]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required and must be a non-empty string")
        return v


class BaseDataUpdate(CamelModel):
    """Schema for replacing a baseline's records."""

    data: list[Any] | None = None


class BaseDataSummary(CamelModel):
    """Baseline metadata without the records."""

    id: str
    name: str
    created_at: datetime


class BaseDataRead(CamelModel):
    """Full baseline including records."""

    id: str
    workflow_id: str
    name: str
    data: list[Any] = PydanticField(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: BaseData) -> "BaseDataRead":
        data = entity.get_data()
        return cls(
            id=entity.id,
            workflow_id=entity.workflow_id,
            name=entity.name,
            data=data if isinstance(data, list) else [],
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
