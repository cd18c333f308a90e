"""Integration routes.

Create integrations, inspect their token state, and test the stored
connection. Secrets are never returned.
"""

from typing import Any

import structlog
from fastapi import APIRouter, status

from changewatch.api.deps import CurrentUser, IntegrationServiceDep, OAuthServiceDep
from changewatch.models.integration import (
    ConnectionTestResult,
    IntegrationCreate,
    IntegrationRead,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.get(
    "/providers",
    summary="List providers",
    description="List the providers integrations can be created for.",
)
async def list_providers(
    user: CurrentUser,
    oauth_service: OAuthServiceDep,
) -> list[dict[str, Any]]:
    return oauth_service.list_providers()


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create integration",
)
async def create_integration(
    data: IntegrationCreate,
    user: CurrentUser,
    integration_service: IntegrationServiceDep,
    oauth_service: OAuthServiceDep,
) -> IntegrationRead:
    """Create an integration with its (encrypted) config.

    Usually the config carries only clientId and clientSecret; tokens are
    added by the OAuth callback.
    """
    integration = await integration_service.create(user.id, data)
    return oauth_service.to_read(integration)


@router.get(
    "/{integration_id}",
    summary="Get integration",
)
async def get_integration(
    integration_id: str,
    user: CurrentUser,
    integration_service: IntegrationServiceDep,
    oauth_service: OAuthServiceDep,
) -> IntegrationRead:
    """Get integration metadata and token state."""
    integration = await integration_service.get(integration_id, user.id)
    return oauth_service.to_read(integration)


@router.post(
    "/{integration_id}/test",
    summary="Test connection",
    description="Make one lightweight provider call with the stored access token.",
)
async def test_integration(
    integration_id: str,
    user: CurrentUser,
    oauth_service: OAuthServiceDep,
) -> ConnectionTestResult:
    result = await oauth_service.test_connection(integration_id, user.id)

    logger.info(
        "integration_connection_tested",
        integration_id=integration_id,
        user_id=user.id,
        success=result.success,
    )

    return result
