"""Figma OAuth integration.

Implements the OAuth 2.0 flow for Figma.
Docs: https://www.figma.com/developers/api#oauth2

The token endpoint takes a form-encoded body and HTTP Basic Auth of
client_id:client_secret for both grant types.
"""

from typing import Any

import httpx
import structlog

from changewatch.config import settings
from changewatch.core.errors import TransportError, UpstreamAuthError
from changewatch.integrations.base import BaseIntegration, OAuthEndpoints, OAuthTokens
from changewatch.integrations.figma.activity import raise_for_provider_status
from changewatch.models.integration import ProviderConfig

logger = structlog.get_logger()


class FigmaIntegration(BaseIntegration):
    """Figma integration implementation."""

    @property
    def provider_id(self) -> str:
        return "figma"

    @property
    def display_name(self) -> str:
        return "Figma"

    def get_endpoints(self) -> OAuthEndpoints:
        return OAuthEndpoints(
            provider_id=self.provider_id,
            display_name=self.display_name,
            authorize_url=settings.figma_authorize_url,
            token_url=settings.figma_token_url,
            redirect_uri=settings.figma_redirect_uri,
            scopes=[settings.figma_oauth_scope],
        )

    def build_authorization_params(
        self,
        endpoints: OAuthEndpoints,
        client_id: str,
        state: str,
    ) -> dict[str, str]:
        return {
            "client_id": client_id,
            "redirect_uri": endpoints.redirect_uri,
            "scope": " ".join(endpoints.scopes),
            "state": state,
            "response_type": "code",
        }

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
        code: str,
    ) -> OAuthTokens:
        """Exchange a Figma authorization code for tokens."""
        endpoints = self.get_endpoints()
        return await self._token_request(
            client,
            config,
            {
                "redirect_uri": endpoints.redirect_uri,
                "code": code,
                "grant_type": "authorization_code",
            },
            action="exchange authorization code",
        )

    async def refresh_tokens(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
    ) -> OAuthTokens:
        """Exchange the stored Figma refresh token for new tokens."""
        return await self._token_request(
            client,
            config,
            {
                "refresh_token": config.refresh_token or "",
                "grant_type": "refresh_token",
            },
            action="refresh access token",
        )

    async def _token_request(
        self,
        client: httpx.AsyncClient,
        config: ProviderConfig,
        form: dict[str, str],
        action: str,
    ) -> OAuthTokens:
        endpoints = self.get_endpoints()
        auth_header = self.build_basic_auth_header(
            config.client_id or "",
            config.client_secret or "",
        )

        try:
            response = await client.post(
                endpoints.token_url,
                data=form,
                headers={
                    "Authorization": auth_header,
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                timeout=settings.http_timeout,
            )
        except httpx.HTTPError as e:
            logger.error(
                "figma_oauth_http_error",
                grant_type=form["grant_type"],
                error=str(e),
            )
            raise TransportError(f"HTTP error during Figma token request: {e}") from e

        if not response.is_success:
            body = response.text
            logger.error(
                "figma_oauth_token_request_failed",
                grant_type=form["grant_type"],
                status_code=response.status_code,
            )
            raise UpstreamAuthError(
                f"Failed to {action}: {body}",
                upstream_status=response.status_code,
                upstream_body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError("Figma token response is not valid JSON") from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise UpstreamAuthError(f"Failed to {action}: no access token in Figma response")

        expires_in = data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (ValueError, TypeError) as e:
                raise TransportError("Figma token response is malformed") from e

        logger.info(
            "figma_oauth_token_request_success",
            grant_type=form["grant_type"],
            expires_in=expires_in,
        )

        return OAuthTokens(
            access_token=access_token,
            token_type=data.get("token_type", "Bearer"),
            refresh_token=data.get("refresh_token"),
            expires_in=expires_in,
            provider_user_id=data.get("user_id_string"),
            raw_response=data,
        )

    def build_config_update(self, tokens: OAuthTokens, now_ms: int) -> dict[str, Any]:
        update: dict[str, Any] = {"accessToken": tokens.access_token}
        if tokens.refresh_token:
            update["refreshToken"] = tokens.refresh_token
        expires_at = tokens.expires_at_ms(now_ms)
        if expires_at is not None:
            update["expiresAt"] = str(expires_at)
        if tokens.provider_user_id:
            update["userId"] = tokens.provider_user_id
        return update

    async def test_connection(
        self,
        client: httpx.AsyncClient,
        access_token: str,
    ) -> None:
        """Request a single activity log entry to verify the token."""
        try:
            response = await client.get(
                f"{settings.figma_api_base_url.rstrip('/')}/v1/activity_logs",
                params={"limit": "1"},
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=settings.http_timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP error during Figma connection test: {e}") from e

        raise_for_provider_status(response)
