"""Execution and step log models.

An Execution is one run of a workflow. Every step invoked inside it leaves
exactly one ExecutionStepLog row; those rows form the queryable trace that
change detection reads the latest fetch output from.
Input and output payloads are stored as JSON strings.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Column, Field, SQLModel, Text


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class ExecutionStatus(str, Enum):
    """Execution lifecycle status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StepStatus(str, Enum):
    """Outcome of a single step invocation."""

    SUCCESS = "success"
    ERROR = "error"


class Execution(SQLModel, table=True):
    """Execution database entity."""

    __tablename__ = "execution"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="Unique execution identifier (UUID)",
    )
    workflow_id: str = Field(
        foreign_key="workflow.id",
        index=True,
        description="Associated workflow ID",
    )
    user_id: str = Field(
        foreign_key="user.id",
        index=True,
        description="User who triggered the execution",
    )
    status: ExecutionStatus = Field(
        default=ExecutionStatus.PENDING,
        index=True,
        description="Current execution status",
    )
    started_at: datetime = Field(
        default_factory=utc_now,
        description="Execution start timestamp (UTC)",
    )
    completed_at: datetime | None = Field(
        default=None,
        description="Execution completion timestamp (UTC)",
    )


class ExecutionStepLog(SQLModel, table=True):
    """One recorded step invocation.

    Identity is (execution_id, node_id, timestamp); ``id`` is a surrogate key.
    Rows are written once by the step recorder and never updated.
    """

    __tablename__ = "execution_step_log"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
    )
    execution_id: str = Field(
        foreign_key="execution.id",
        index=True,
        description="Execution the step ran in",
    )
    node_id: str = Field(
        max_length=100,
        index=True,
        description="Workflow node that invoked the step",
    )
    node_type: str = Field(
        max_length=100,
        index=True,
        description="Step type, e.g. 'figma/get-activity-logs'",
    )
    status: StepStatus = Field(index=True)
    input_data: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="JSON step input",
    )
    output_data: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="JSON step output",
    )
    error: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
        description="Error message if the step failed",
    )
    duration_ms: int = Field(default=0, ge=0)
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime = Field(default_factory=utc_now)
    timestamp: datetime = Field(
        default_factory=utc_now,
        index=True,
        description="Instant the row was recorded (UTC)",
    )

    def get_input_data(self) -> Any:
        """Parse and return the step input."""
        if self.input_data is None:
            return None
        return json.loads(self.input_data)

    def set_input_data(self, data: Any) -> None:
        """Set the step input."""
        self.input_data = json.dumps(data, default=str)

    def get_output_data(self) -> Any:
        """Parse and return the step output."""
        if self.output_data is None:
            return None
        return json.loads(self.output_data)

    def set_output_data(self, data: Any) -> None:
        """Set the step output."""
        self.output_data = json.dumps(data, default=str)


class CamelModel(BaseModel):
    """Wire schema using camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ExecutionCreate(CamelModel):
    """Schema for creating a new execution."""

    workflow_id: str


class ExecutionRead(CamelModel):
    """Schema for reading execution data."""

    id: str
    workflow_id: str
    user_id: str
    status: ExecutionStatus
    started_at: datetime
    completed_at: datetime | None = None


class ExecutionStepLogRead(CamelModel):
    """Schema for reading one entry of the execution trace."""

    id: str
    execution_id: str
    node_id: str
    node_type: str
    status: StepStatus
    input: Any = None
    output: Any = None
    error: str | None = None
    duration_ms: int
    started_at: datetime
    completed_at: datetime
    timestamp: datetime

    @classmethod
    def from_entity(cls, log: ExecutionStepLog) -> "ExecutionStepLogRead":
        """Build from a database row, parsing JSON payloads."""
        return cls(
            id=log.id,
            execution_id=log.execution_id,
            node_id=log.node_id,
            node_type=log.node_type,
            status=log.status,
            input=log.get_input_data(),
            output=log.get_output_data(),
            error=log.error,
            duration_ms=log.duration_ms,
            started_at=log.started_at,
            completed_at=log.completed_at,
            timestamp=log.timestamp,
        )


class StepRunRequest(CamelModel):
    """Schema for invoking a registered step inside an execution."""

    node_id: str
    node_type: str
    input: dict[str, Any] = {}
