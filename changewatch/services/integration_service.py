"""Integration service.

The credential store of the core: persists integrations and their config,
Fernet-encrypted at rest. Only OAuth flows write token keys; nothing here
deletes an integration.
"""

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from changewatch.config import settings
from changewatch.core.encryption import ConfigEncryption, DecryptionError
from changewatch.core.errors import ChangewatchError, NotFoundError
from changewatch.models.integration import (
    Integration,
    IntegrationCreate,
    ProviderConfig,
    parse_integration_config,
    utc_now,
)

logger = structlog.get_logger()


class IntegrationService:
    """Service for reading and writing integration configs.

    Handles:
    - Creating integrations with encrypted config
    - Loading the parsed, typed config of an integration
    - Merging token updates into the stored config
    - User-scoped access control

    Example usage:
        service = IntegrationService(session)

        integration = await service.create(
            user_id="user-123",
            data=IntegrationCreate(
                type="figma",
                name="Design org",
                config={"clientId": "...", "clientSecret": "..."},
            ),
        )

        config = await service.get_config(integration.id, "user-123")
    """

    def __init__(
        self,
        session: AsyncSession,
        encryption: ConfigEncryption | None = None,
    ) -> None:
        """Initialize integration service.

        Args:
            session: Async database session
            encryption: Config encryption (defaults to the configured key)
        """
        self._session = session
        self._encryption = encryption or ConfigEncryption(
            settings.encryption_key.get_secret_value()
        )

    async def create(
        self,
        user_id: str,
        data: IntegrationCreate,
    ) -> Integration:
        """Create a new integration.

        Args:
            user_id: Owner user ID
            data: Integration creation data

        Returns:
            Created integration entity
        """
        integration = Integration(
            user_id=user_id,
            type=data.type.lower(),
            name=data.name,
            encrypted_config=self._encryption.encrypt(data.config),
        )

        self._session.add(integration)
        await self._session.commit()
        await self._session.refresh(integration)

        logger.info(
            "integration_created",
            integration_id=integration.id,
            user_id=user_id,
            integration_type=integration.type,
        )

        return integration

    async def get(
        self,
        integration_id: str,
        user_id: str,
    ) -> Integration:
        """Get an integration owned by the user.

        Raises:
            NotFoundError: If it doesn't exist or belongs to someone else
        """
        query = select(Integration).where(Integration.id == integration_id)
        result = await self._session.execute(query)
        integration = result.scalar_one_or_none()

        if integration is None:
            raise NotFoundError("Integration not found")

        if integration.user_id != user_id:
            logger.warning(
                "integration_access_denied",
                integration_id=integration_id,
                requested_by=user_id,
            )
            raise NotFoundError("Integration not found")

        return integration

    async def get_config(
        self,
        integration_id: str,
        user_id: str,
    ) -> ProviderConfig:
        """Load and decrypt an integration's config.

        SECURITY: Never log the returned values.

        Raises:
            NotFoundError: If the integration doesn't exist
            ChangewatchError: If the stored config cannot be decrypted
        """
        integration = await self.get(integration_id, user_id)
        return self.decrypt_config(integration)

    def decrypt_config(self, integration: Integration) -> ProviderConfig:
        """Decrypt and parse the config of a loaded integration."""
        try:
            mapping = self._encryption.decrypt(integration.encrypted_config)
        except DecryptionError as e:
            logger.error(
                "integration_config_decryption_failed",
                integration_id=integration.id,
            )
            raise ChangewatchError("Failed to decrypt integration config") from e

        return parse_integration_config(integration.type, mapping)

    async def update_config(
        self,
        integration_id: str,
        user_id: str,
        updates: dict[str, Any],
        remove: list[str] | None = None,
    ) -> ProviderConfig:
        """Merge key updates into the stored config.

        Keys not mentioned are preserved. Callers writing tokens must hold
        the integration's lock.

        Args:
            integration_id: Integration ID
            user_id: Requesting user ID
            updates: Keys to set
            remove: Keys to drop

        Returns:
            The config after the update
        """
        integration = await self.get(integration_id, user_id)
        mapping = self.decrypt_config(integration).to_mapping()

        for key in remove or []:
            mapping.pop(key, None)
        mapping.update(updates)

        integration.encrypted_config = self._encryption.encrypt(mapping)
        integration.updated_at = utc_now()
        await self._session.commit()
        await self._session.refresh(integration)

        logger.info(
            "integration_config_updated",
            integration_id=integration_id,
            user_id=user_id,
            updated_keys=sorted(updates),
            removed_keys=sorted(remove or []),
        )

        return parse_integration_config(integration.type, mapping)
