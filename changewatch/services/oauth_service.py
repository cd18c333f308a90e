"""OAuth service.

Owns the token lifecycle of an integration:

    UNCONFIGURED -> AUTHORIZATION_PENDING -> ACTIVE -> EXPIRED
                                               ^          |
                                               +- refresh +--> REVOKED_OR_INVALID

Initiation builds the provider authorization URL, exchange and refresh call
the provider's token endpoint and merge the new tokens into the stored
config. Token writes are serialized per integration with IntegrationLocks.
"""

import base64
import binascii
import json
import secrets
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from changewatch.config import settings
from changewatch.core.encryption import mask_credential_value
from changewatch.core.errors import (
    ChangewatchError,
    ConfigError,
    UnauthenticatedError,
    UpstreamAuthError,
    ValidationError,
)
from changewatch.core.locks import IntegrationLocks, get_integration_locks
from changewatch.integrations.registry import (
    IntegrationRegistry,
    get_integration_registry,
)
from changewatch.models.integration import (
    ConnectionTestResult,
    Integration,
    IntegrationRead,
    ProviderConfig,
    TokenState,
)
from changewatch.services.integration_service import IntegrationService

logger = structlog.get_logger()

# Config key marking a refresh token the provider rejected
TOKEN_INVALID_KEY = "tokenInvalidAt"

# Token endpoint statuses meaning the grant itself was rejected (invalid_grant)
GRANT_REJECTED_STATUSES = (400, 401)

HttpClientFactory = Callable[[], httpx.AsyncClient]


def current_time_ms() -> int:
    """Current wall clock as epoch milliseconds."""
    return int(time.time() * 1000)


def default_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.http_timeout)


def token_state(
    config: ProviderConfig,
    now_ms: int,
    margin_ms: int = 0,
) -> TokenState:
    """Derive the lifecycle state of a stored config.

    Args:
        config: Parsed integration config
        now_ms: Current time in epoch milliseconds
        margin_ms: Treat tokens expiring within this window as expired

    Returns:
        The token state
    """
    if not config.has_client_credentials:
        return TokenState.UNCONFIGURED
    if config.extra.get(TOKEN_INVALID_KEY):
        return TokenState.REVOKED_OR_INVALID
    if not config.access_token:
        return TokenState.AUTHORIZATION_PENDING

    expires_at = config.expires_at_ms
    if expires_at is not None and expires_at <= now_ms + margin_ms:
        return TokenState.EXPIRED
    return TokenState.ACTIVE


def encode_state(integration_id: str, nonce: str | None = None) -> str:
    """Encode the OAuth state parameter carrying the integration id."""
    payload = {
        "nonce": nonce or secrets.token_hex(32),
        "integrationId": integration_id,
    }
    return base64.b64encode(json.dumps(payload).encode()).decode()


def decode_state(state: str) -> str:
    """Decode the OAuth state parameter.

    Returns:
        The integration id carried in the state

    Raises:
        ValidationError: If the state is malformed
    """
    try:
        payload = json.loads(base64.b64decode(state, validate=True).decode())
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise ValidationError("Invalid state parameter") from e

    integration_id = payload.get("integrationId") if isinstance(payload, dict) else None
    if not integration_id or not isinstance(integration_id, str):
        raise ValidationError("Invalid state parameter")

    return integration_id


class OAuthService:
    """Service driving the OAuth flows of stored integrations.

    Provides:
    - Authorization URL generation with a state parameter
    - Token exchange (authorization code -> access/refresh tokens)
    - Explicit and proactive token refresh
    - Connection tests with the stored access token

    Example usage:
        service = OAuthService(IntegrationService(session))

        result = service.initiate(client_id="abc", integration_id=integration.id)
        # redirect the user to result["authUrl"]

        # in the callback
        await service.exchange(code, decode_state(state), user.id)

        # later, when the access token expired
        await service.refresh(integration.id, user.id)
    """

    def __init__(
        self,
        integration_service: IntegrationService,
        registry: IntegrationRegistry | None = None,
        locks: IntegrationLocks | None = None,
        http_client_factory: HttpClientFactory | None = None,
        clock: Callable[[], int] | None = None,
        refresh_margin_seconds: int | None = None,
    ) -> None:
        """Initialize OAuth service.

        Args:
            integration_service: Credential store
            registry: Provider adapters (defaults to the shared registry)
            locks: Per-integration locks (defaults to the process-wide registry)
            http_client_factory: Builds the HTTP client for provider calls
            clock: Returns the current time in epoch milliseconds
            refresh_margin_seconds: Window before expiry that counts as expired
        """
        self._integrations = integration_service
        self._registry = registry or get_integration_registry()
        self._locks = locks or get_integration_locks()
        self._http_client_factory = http_client_factory or default_http_client
        self._clock = clock or current_time_ms
        margin = (
            refresh_margin_seconds
            if refresh_margin_seconds is not None
            else settings.token_refresh_margin_seconds
        )
        self._margin_ms = margin * 1000

    def initiate(
        self,
        client_id: str | None,
        integration_id: str,
        provider: str = "figma",
    ) -> dict[str, str]:
        """Build the authorization URL for an integration.

        No network call is made.

        Returns:
            {"authUrl": ..., "state": ...}

        Raises:
            ConfigError: If client_id is missing
            ValidationError: If the provider is unknown
        """
        if not client_id:
            raise ConfigError("Client ID is required")

        state = encode_state(integration_id)
        auth_url = self._registry.get_authorization_url(provider, client_id, state)

        logger.info(
            "oauth_authorization_initiated",
            provider=provider,
            integration_id=integration_id,
            client_id=mask_credential_value(client_id),
        )

        return {"authUrl": auth_url, "state": state}

    async def exchange(
        self,
        code: str,
        integration_id: str,
        user_id: str | None,
    ) -> TokenState:
        """Exchange an authorization code and store the tokens.

        Args:
            code: Authorization code from the callback
            integration_id: Integration decoded from the state
            user_id: Session user, None when there is no session

        Returns:
            The token state after the exchange

        Raises:
            UnauthenticatedError: If there is no session
            NotFoundError: If the integration doesn't exist
            ConfigError: If client credentials are missing
            UpstreamAuthError: If the provider rejects the code
            TransportError: If the provider is unreachable
        """
        if not user_id:
            raise UnauthenticatedError("Unauthorized")

        async with self._locks.hold(integration_id):
            integration = await self._integrations.get(integration_id, user_id)
            config = self._integrations.decrypt_config(integration)

            if not config.has_client_credentials:
                raise ConfigError("Client ID and Client Secret must be configured first")

            adapter = self._registry.get_integration(integration.type)
            async with self._http_client_factory() as client:
                tokens = await adapter.exchange_code(client, config, code)

            updated = await self._integrations.update_config(
                integration_id,
                user_id,
                adapter.build_config_update(tokens, self._clock()),
                remove=[TOKEN_INVALID_KEY],
            )

        logger.info(
            "oauth_code_exchanged",
            integration_id=integration_id,
            user_id=user_id,
            provider=integration.type,
        )

        return token_state(updated, self._clock())

    async def refresh(
        self,
        integration_id: str,
        user_id: str | None,
    ) -> TokenState:
        """Exchange the stored refresh token for new tokens.

        At most one refresh per integration is in flight; a second caller
        waits and then refreshes with the token the first one stored.

        Raises:
            UnauthenticatedError: If there is no session
            NotFoundError: If the integration doesn't exist
            ConfigError: If the refresh token or client credentials are missing
            UpstreamAuthError: If the provider rejects the refresh token
            TransportError: If the provider is unreachable
        """
        if not user_id:
            raise UnauthenticatedError("Unauthorized")

        async with self._locks.hold(integration_id):
            return await self._refresh_locked(integration_id, user_id)

    async def refresh_if_needed(
        self,
        integration_id: str,
        user_id: str | None,
    ) -> TokenState:
        """Refresh only when the access token expires within the margin.

        The expiry check is repeated under the lock so callers racing on the
        same integration trigger a single provider call.
        """
        if not user_id:
            raise UnauthenticatedError("Unauthorized")

        async with self._locks.hold(integration_id):
            config = await self._integrations.get_config(integration_id, user_id)
            state = token_state(config, self._clock(), self._margin_ms)
            if state != TokenState.EXPIRED:
                logger.debug(
                    "oauth_refresh_skipped",
                    integration_id=integration_id,
                    token_state=state.value,
                )
                return state
            return await self._refresh_locked(integration_id, user_id)

    async def _refresh_locked(self, integration_id: str, user_id: str) -> TokenState:
        integration = await self._integrations.get(integration_id, user_id)
        config = self._integrations.decrypt_config(integration)

        if not (config.has_client_credentials and config.refresh_token):
            raise ConfigError("Missing required credentials for token refresh")

        adapter = self._registry.get_integration(integration.type)
        try:
            async with self._http_client_factory() as client:
                tokens = await adapter.refresh_tokens(client, config)
        except UpstreamAuthError as e:
            if e.upstream_status not in GRANT_REJECTED_STATUSES:
                logger.warning(
                    "oauth_refresh_upstream_failure",
                    integration_id=integration_id,
                    upstream_status=e.upstream_status,
                )
                raise
            await self._integrations.update_config(
                integration_id,
                user_id,
                {TOKEN_INVALID_KEY: str(self._clock())},
            )
            logger.warning(
                "oauth_token_revoked_or_invalid",
                integration_id=integration_id,
                user_id=user_id,
            )
            raise

        update = adapter.build_config_update(tokens, self._clock())
        # Providers may keep the refresh token stable and omit it
        update.setdefault("refreshToken", config.refresh_token)

        updated = await self._integrations.update_config(
            integration_id,
            user_id,
            update,
            remove=[TOKEN_INVALID_KEY],
        )

        logger.info(
            "oauth_token_refreshed",
            integration_id=integration_id,
            user_id=user_id,
            expires_at=updated.expires_at_ms,
        )

        return token_state(updated, self._clock())

    def needs_refresh(self, config: ProviderConfig) -> bool:
        """Check whether the access token expires within the refresh margin."""
        return token_state(config, self._clock(), self._margin_ms) == TokenState.EXPIRED

    async def test_connection(
        self,
        integration_id: str,
        user_id: str,
    ) -> ConnectionTestResult:
        """Make one lightweight provider call with the stored access token."""
        integration = await self._integrations.get(integration_id, user_id)
        config = self._integrations.decrypt_config(integration)

        if not config.access_token:
            return ConnectionTestResult(
                success=False,
                error="Not connected. Please connect your Figma account first.",
            )

        adapter = self._registry.get_integration(integration.type)
        try:
            async with self._http_client_factory() as client:
                await adapter.test_connection(client, config.access_token)
        except ChangewatchError as e:
            logger.info(
                "integration_connection_test_failed",
                integration_id=integration_id,
                error_code=e.code,
            )
            return ConnectionTestResult(success=False, error=e.message)

        return ConnectionTestResult(success=True)

    def to_read(self, integration: Integration) -> IntegrationRead:
        """Build the public view of an integration, without secrets."""
        config = self._integrations.decrypt_config(integration)
        configured_keys: list[str] = sorted(
            key for key, value in config.to_mapping().items() if value not in (None, "")
        )
        return IntegrationRead(
            id=integration.id,
            user_id=integration.user_id,
            type=integration.type,
            name=integration.name,
            token_state=token_state(config, self._clock()),
            expires_at=config.expires_at_ms,
            configured_keys=configured_keys,
            created_at=integration.created_at,
            updated_at=integration.updated_at,
        )

    def list_providers(self) -> list[dict[str, Any]]:
        """List the providers integrations can be created for."""
        return self._registry.list_integrations()
