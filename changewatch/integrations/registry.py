"""Integration registry.

Central registry mapping integration types to their provider adapters.
"""

from functools import lru_cache
from typing import Any
from urllib.parse import urlencode

import structlog

from changewatch.core.errors import ConfigError, ValidationError
from changewatch.integrations.base import BaseIntegration
from changewatch.integrations.figma import FigmaIntegration

logger = structlog.get_logger()


class IntegrationRegistry:
    """Registry for OAuth provider adapters.

    Example usage:
        registry = IntegrationRegistry()
        figma = registry.get_integration("figma")
        auth_url = registry.get_authorization_url("figma", client_id, state)
    """

    def __init__(self) -> None:
        """Initialize registry with all known integrations."""
        self._integrations: dict[str, BaseIntegration] = {}
        self._load_integrations()

    def _load_integrations(self) -> None:
        integrations: list[BaseIntegration] = [
            FigmaIntegration(),
        ]

        for integration in integrations:
            self._integrations[integration.provider_id] = integration
            logger.debug(
                "integration_registered",
                provider_id=integration.provider_id,
            )

    def get_integration(self, provider_id: str) -> BaseIntegration:
        """Get integration by provider ID.

        Raises:
            ValidationError: If the provider is unknown
        """
        integration = self._integrations.get(provider_id.lower())
        if integration is None:
            raise ValidationError(
                f"Unsupported integration type: {provider_id}. "
                f"Available: {list(self._integrations.keys())}"
            )
        return integration

    def get_authorization_url(
        self,
        provider_id: str,
        client_id: str,
        state: str,
    ) -> str:
        """Generate the provider's OAuth authorization URL.

        Raises:
            ValidationError: If the provider is unknown
            ConfigError: If client_id is empty
        """
        if not client_id:
            raise ConfigError("Client ID is required")

        integration = self.get_integration(provider_id)
        endpoints = integration.get_endpoints()
        params = integration.build_authorization_params(endpoints, client_id, state)
        auth_url = f"{endpoints.authorize_url}?{urlencode(params)}"

        logger.info(
            "oauth_authorization_url_generated",
            provider=provider_id,
            redirect_uri=endpoints.redirect_uri,
        )

        return auth_url

    def list_integrations(self) -> list[dict[str, Any]]:
        """List all available provider adapters."""
        return [
            {
                "provider_id": provider_id,
                "display_name": integration.display_name,
            }
            for provider_id, integration in self._integrations.items()
        ]


@lru_cache
def get_integration_registry() -> IntegrationRegistry:
    """Get cached integration registry instance."""
    return IntegrationRegistry()
