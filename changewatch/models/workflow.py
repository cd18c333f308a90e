"""Workflow entity model.

Workflow definitions are edited elsewhere; this table only carries the
identity and ownership that baselines and executions hang off.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Workflow(SQLModel, table=True):
    """Workflow database entity."""

    __tablename__ = "workflow"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="Unique workflow identifier (UUID)",
    )
    user_id: str = Field(
        foreign_key="user.id",
        index=True,
        description="Owner user ID",
    )
    name: str = Field(
        max_length=255,
        min_length=1,
        description="Workflow name",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="Creation timestamp (UTC)",
    )
