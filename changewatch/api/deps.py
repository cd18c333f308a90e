"""API dependencies for FastAPI dependency injection.

Provides database sessions, the session user, and service instances.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, AsyncGenerator

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from changewatch.config import settings
from changewatch.core.errors import UnauthenticatedError
from changewatch.core.step_recorder import StepExecutionRecorder
from changewatch.models.user import TokenPayload, User
from changewatch.services.base_data_service import BaseDataService
from changewatch.services.execution_log_service import ExecutionLogService
from changewatch.services.execution_service import ExecutionService
from changewatch.services.integration_service import IntegrationService
from changewatch.services.oauth_service import (
    HttpClientFactory,
    OAuthService,
    default_http_client,
)
from changewatch.services.workflow_service import WorkflowService
from changewatch.steps.base import StepServices
from changewatch.steps.registry import StepRegistry, get_step_registry

logger = structlog.get_logger()


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug}
    # SQLite pools take no sizing arguments
    if not settings.database_url.startswith("sqlite"):
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
        )
    return options


# Database engine and session
_engine = create_async_engine(settings.database_url, **_engine_options())

_async_session_maker = sessionmaker(
    _engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Security
_bearer_scheme = HTTPBearer(auto_error=False)


async def init_db() -> None:
    """Initialize database tables.

    Only call during development. Use Alembic migrations in production.
    """
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("database_initialized")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session.

    Yields:
        AsyncSession that will be closed after use
    """
    async with _async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


# Type alias for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db_session)]


def create_access_token(user_id: str) -> str:
    """Create a JWT access token.

    Sessions are issued by the platform; this exists for it and for tests.

    Args:
        user_id: User ID to encode in token

    Returns:
        Encoded JWT token
    """
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.jwt_access_token_expire_minutes
    )

    payload = TokenPayload(sub=user_id, exp=expire)

    return jwt.encode(
        payload.model_dump(),
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> TokenPayload:
    """Decode and validate a JWT access token.

    Raises:
        UnauthenticatedError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
        return TokenPayload(**payload)
    except JWTError as e:
        raise UnauthenticatedError("Invalid authentication token") from e


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    session: DBSession,
) -> User:
    """Get the session user.

    Raises:
        UnauthenticatedError: If there is no valid session
    """
    if credentials is None:
        raise UnauthenticatedError("Unauthorized")

    token_data = decode_access_token(credentials.credentials)

    if token_data.exp < datetime.now(timezone.utc):
        raise UnauthenticatedError("Token has expired")

    query = select(User).where(User.id == token_data.sub)
    result = await session.execute(query)
    user = result.scalar_one_or_none()

    if user is None:
        raise UnauthenticatedError("User not found")

    if not user.is_active:
        raise UnauthenticatedError("User account is disabled")

    return user


# Type alias for authenticated user dependency
CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
    session: DBSession,
) -> User | None:
    """Get the session user if there is one, None otherwise."""
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, session)
    except UnauthenticatedError:
        return None


OptionalUser = Annotated[User | None, Depends(get_optional_user)]


# Service dependencies
def get_http_client_factory() -> HttpClientFactory:
    """Factory for clients talking to provider APIs."""
    return default_http_client


HttpClientFactoryDep = Annotated[HttpClientFactory, Depends(get_http_client_factory)]


def get_workflow_service(session: DBSession) -> WorkflowService:
    """Get workflow service instance."""
    return WorkflowService(session)


def get_integration_service(session: DBSession) -> IntegrationService:
    """Get integration service instance."""
    return IntegrationService(session)


def get_execution_service(
    session: DBSession,
    workflow_service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> ExecutionService:
    """Get execution service instance."""
    return ExecutionService(session, workflow_service)


def get_execution_log_service(session: DBSession) -> ExecutionLogService:
    """Get execution log service instance."""
    return ExecutionLogService(session)


def get_base_data_service(
    session: DBSession,
    workflow_service: Annotated[WorkflowService, Depends(get_workflow_service)],
) -> BaseDataService:
    """Get base data service instance."""
    return BaseDataService(session, workflow_service)


def get_oauth_service(
    integration_service: Annotated[IntegrationService, Depends(get_integration_service)],
    http_client_factory: HttpClientFactoryDep,
) -> OAuthService:
    """Get OAuth service instance."""
    return OAuthService(integration_service, http_client_factory=http_client_factory)


def get_step_recorder(
    log_service: Annotated[ExecutionLogService, Depends(get_execution_log_service)],
) -> StepExecutionRecorder:
    """Get step recorder writing to the execution trace."""
    return StepExecutionRecorder(log_service)


def get_step_services(
    integration_service: Annotated[IntegrationService, Depends(get_integration_service)],
    execution_service: Annotated[ExecutionService, Depends(get_execution_service)],
    log_service: Annotated[ExecutionLogService, Depends(get_execution_log_service)],
    base_data_service: Annotated[BaseDataService, Depends(get_base_data_service)],
    http_client_factory: HttpClientFactoryDep,
) -> StepServices:
    """Collaborators handed to steps."""
    return StepServices(
        integrations=integration_service,
        executions=execution_service,
        execution_logs=log_service,
        base_data=base_data_service,
        http_client_factory=http_client_factory,
    )


# Type aliases for service dependencies
WorkflowServiceDep = Annotated[WorkflowService, Depends(get_workflow_service)]
IntegrationServiceDep = Annotated[IntegrationService, Depends(get_integration_service)]
ExecutionServiceDep = Annotated[ExecutionService, Depends(get_execution_service)]
ExecutionLogServiceDep = Annotated[ExecutionLogService, Depends(get_execution_log_service)]
BaseDataServiceDep = Annotated[BaseDataService, Depends(get_base_data_service)]
OAuthServiceDep = Annotated[OAuthService, Depends(get_oauth_service)]
StepRecorderDep = Annotated[StepExecutionRecorder, Depends(get_step_recorder)]
StepServicesDep = Annotated[StepServices, Depends(get_step_services)]
StepRegistryDep = Annotated[StepRegistry, Depends(get_step_registry)]
