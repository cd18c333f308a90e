"""Base classes for integrations.

Defines the interface that all OAuth provider integrations must implement.
Client credentials live on each Integration record rather than in settings,
so every call receives the parsed provider config explicitly.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from changewatch.models.integration import ProviderConfig


@dataclass
class OAuthEndpoints:
    """Static OAuth endpoints of a provider."""

    provider_id: str
    display_name: str
    authorize_url: str
    token_url: str
    redirect_uri: str
    scopes: list[str]


@dataclass
class OAuthTokens:
    """OAuth tokens returned from a token endpoint call."""

    access_token: str
    token_type: str = "Bearer"
    refresh_token: str | None = None
    expires_in: int | None = None
    provider_user_id: str | None = None
    raw_response: dict[str, Any] | None = None

    def expires_at_ms(self, now_ms: int) -> int | None:
        """Absolute expiry in epoch milliseconds."""
        if self.expires_in is None:
            return None
        return now_ms + self.expires_in * 1000


class BaseIntegration(ABC):
    """Base class for all integrations.

    Each integration must implement:
    - get_endpoints(): Return the provider's OAuth endpoints
    - build_authorization_params(): Build provider-specific auth params
    - exchange_code(): Exchange authorization code for tokens
    - refresh_tokens(): Exchange a refresh token for new tokens
    - build_config_update(): Map tokens onto config keys
    - test_connection(): Verify an access token with a cheap API call
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique provider identifier (e.g., 'figma')."""
        ...

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable provider name."""
        ...

    @abstractmethod
    def get_endpoints(self) -> OAuthEndpoints:
        """Get OAuth endpoints for this provider."""
        ...

    @abstractmethod
    def build_authorization_params(
        self,
        endpoints: OAuthEndpoints,
        client_id: str,
        state: str,
    ) -> dict[str, str]:
        """Build provider-specific authorization URL parameters."""
        ...

    @abstractmethod
    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
        code: str,
    ) -> OAuthTokens:
        """Exchange authorization code for tokens."""
        ...

    @abstractmethod
    async def refresh_tokens(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
    ) -> OAuthTokens:
        """Exchange the stored refresh token for new tokens."""
        ...

    @abstractmethod
    def build_config_update(
        self,
        tokens: OAuthTokens,
        now_ms: int,
    ) -> dict[str, Any]:
        """Build the config keys to overwrite after a token call."""
        ...

    @abstractmethod
    async def test_connection(
        self,
        client: httpx.AsyncClient,
        access_token: str,
    ) -> None:
        """Make a lightweight authenticated call; raise on failure."""
        ...

    @staticmethod
    def build_basic_auth_header(client_id: str, client_secret: str) -> str:
        """Build HTTP Basic Auth header value."""
        credentials = f"{client_id}:{client_secret}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return f"Basic {encoded}"
