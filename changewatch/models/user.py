"""User entity model.

Users are owned by the platform's own authentication system; this service
only needs to know who the session belongs to. Integrations and workflows
are scoped by user_id.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    """User database entity."""

    __tablename__ = "user"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="Unique user identifier (UUID)",
    )
    username: str = Field(
        max_length=50,
        index=True,
        unique=True,
        description="Unique username",
    )
    is_active: bool = Field(
        default=True,
        description="Whether the user account is active",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="Account creation timestamp (UTC)",
    )


class TokenPayload(SQLModel):
    """JWT token payload schema."""

    sub: str  # user_id
    exp: datetime
