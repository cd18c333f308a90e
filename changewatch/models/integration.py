"""Integration entity model.

An Integration is a configured connection to a third-party provider. Its
config (client credentials, OAuth tokens, provider identifiers) is stored
Fernet-encrypted; in memory it is parsed into a typed, provider-specific
shape with an ``extra`` map for fields this service does not know about.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field as PydanticField
from sqlmodel import Column, Field, SQLModel, Text

from changewatch.models.execution import CamelModel


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class TokenState(str, Enum):
    """Lifecycle state of an integration's OAuth token."""

    UNCONFIGURED = "unconfigured"
    AUTHORIZATION_PENDING = "authorization_pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED_OR_INVALID = "revoked_or_invalid"


class Integration(SQLModel, table=True):
    """Integration database entity.

    SECURITY NOTES:
    - encrypted_config holds client secrets and tokens
    - Never log decrypted config values
    """

    __tablename__ = "integration"

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        primary_key=True,
        description="Unique integration identifier (UUID)",
    )
    user_id: str = Field(
        foreign_key="user.id",
        index=True,
        description="Owner user ID",
    )
    type: str = Field(
        max_length=50,
        index=True,
        description="Provider tag, e.g. 'figma'",
    )
    name: str = Field(
        max_length=255,
        min_length=1,
        description="Human-readable integration name",
    )
    encrypted_config: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Fernet-encrypted JSON config mapping",
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column_kwargs={"onupdate": utc_now},
    )


class ProviderConfig(BaseModel):
    """Common shape of an OAuth provider config.

    Known keys are typed fields; anything else survives in ``extra`` so a
    round trip through this model never drops provider-specific values.
    """

    model_config = ConfigDict(populate_by_name=True)

    client_id: str | None = PydanticField(default=None, alias="clientId")
    client_secret: str | None = PydanticField(default=None, alias="clientSecret")
    access_token: str | None = PydanticField(default=None, alias="accessToken")
    refresh_token: str | None = PydanticField(default=None, alias="refreshToken")
    expires_at: str | None = PydanticField(default=None, alias="expiresAt")
    extra: dict[str, Any] = PydanticField(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> "ProviderConfig":
        """Parse a stored config mapping."""
        known = {
            field.alias or name
            for name, field in cls.model_fields.items()
            if name != "extra"
        }
        typed = {k: str(v) for k, v in mapping.items() if k in known and v is not None}
        extra = {k: v for k, v in mapping.items() if k not in known}
        return cls(**typed, extra=extra)

    def to_mapping(self) -> dict[str, Any]:
        """Render back to the stored mapping (camelCase keys, no Nones)."""
        data = self.model_dump(by_alias=True, exclude={"extra"}, exclude_none=True)
        return {**self.extra, **data}

    @property
    def expires_at_ms(self) -> int | None:
        """Expiry as epoch milliseconds, if set and numeric."""
        if not self.expires_at:
            return None
        try:
            return int(self.expires_at)
        except ValueError:
            return None

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


class FigmaConfig(ProviderConfig):
    """Figma integration config."""

    user_id: str | None = PydanticField(default=None, alias="userId")


class GenericProviderConfig(ProviderConfig):
    """Config of a provider without a dedicated shape."""


_CONFIG_TYPES: dict[str, type[ProviderConfig]] = {
    "figma": FigmaConfig,
}


def parse_integration_config(
    integration_type: str,
    mapping: dict[str, Any],
) -> ProviderConfig:
    """Parse a config mapping into the shape registered for the provider."""
    config_cls = _CONFIG_TYPES.get(integration_type, GenericProviderConfig)
    return config_cls.from_mapping(mapping)


class IntegrationCreate(CamelModel):
    """Schema for creating an integration."""

    type: str = PydanticField(min_length=1, max_length=50)
    name: str = PydanticField(min_length=1, max_length=255)
    config: dict[str, Any] = PydanticField(default_factory=dict)


class IntegrationRead(CamelModel):
    """Schema for reading an integration (never includes secrets)."""

    id: str
    user_id: str
    type: str
    name: str
    token_state: TokenState
    expires_at: int | None = None
    configured_keys: list[str] = PydanticField(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ConnectionTestResult(CamelModel):
    """Outcome of a lightweight provider call with the stored token."""

    success: bool
    error: str | None = None
