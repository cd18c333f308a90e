"""Pytest configuration and fixtures.

Provides common fixtures for all tests including:
- Database sessions
- Test users, workflows, integrations and executions
- Authentication headers
- Mocked provider HTTP clients
"""

import os

# Settings are read at import time, so the environment is prepared first
TEST_ENCRYPTION_KEY = "Y2hhbmdld2F0Y2gtdGVzdC1lbmNyeXB0aW9uLWtleSE="
os.environ["ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from collections.abc import Callable
from typing import Any, AsyncGenerator
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from changewatch.api.deps import (
    create_access_token,
    get_db_session,
    get_http_client_factory,
)
from changewatch.core.encryption import ConfigEncryption
from changewatch.main import app
from changewatch.models.execution import Execution, ExecutionStatus
from changewatch.models.integration import Integration
from changewatch.models.user import User
from changewatch.models.workflow import Workflow
from changewatch.services import (
    BaseDataService,
    ExecutionLogService,
    ExecutionService,
    IntegrationService,
    WorkflowService,
)
from changewatch.steps.base import StepServices

# Test database URL (uses SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Fixed wall clock for token lifecycle tests (epoch milliseconds)
NOW_MS = 1_760_000_000_000
FAR_FUTURE_MS = 4_102_444_800_000

Handler = Callable[[httpx.Request], httpx.Response]


def client_factory(handler: Handler) -> Callable[[], httpx.AsyncClient]:
    """Build an HTTP client factory answering every request with ``handler``."""

    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


def fail_on_request(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected provider call: {request.method} {request.url}")


def build_step_services(
    session: AsyncSession,
    handler: Handler = fail_on_request,
) -> StepServices:
    """Wire step collaborators onto a test session and a mocked provider."""
    workflows = WorkflowService(session)
    return StepServices(
        integrations=IntegrationService(session, ConfigEncryption(TEST_ENCRYPTION_KEY)),
        executions=ExecutionService(session, workflows),
        execution_logs=ExecutionLogService(session),
        base_data=BaseDataService(session, workflows),
        http_client_factory=client_factory(handler),
    )


def activity_event(
    event_id: str,
    file_key: str = "abc123",
    action_type: str = "file_update",
) -> dict[str, Any]:
    """An activity log event shaped like the provider's."""
    return {
        "id": event_id,
        "timestamp": 1_760_000_000,
        "action": {"type": action_type, "details": {"main_file_key": file_key}},
        "actor": {"id": "u1", "name": "Ada", "email": "ada@example.com", "type": "user"},
        "entity": {"id": file_key, "name": "Design", "type": "file"},
        "context": {
            "client_name": None,
            "ip_address": "127.0.0.1",
            "is_figma_support_team_action": False,
            "org_id": "org-1",
            "team_id": None,
        },
    }


@pytest_asyncio.fixture
async def db_engine():
    """Create async database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session."""
    async_session_maker = sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def provider(client: AsyncClient) -> Callable[[Handler], None]:
    """Route the app's provider calls to a handler for the current test."""

    def install(handler: Handler) -> None:
        app.dependency_overrides[get_http_client_factory] = lambda: client_factory(handler)

    return install


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    user = User(id=str(uuid4()), username="designer", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """Create a second user who owns nothing of test_user's."""
    user = User(id=str(uuid4()), username="someone-else", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Create authentication headers."""
    return {"Authorization": f"Bearer {create_access_token(test_user.id)}"}


@pytest_asyncio.fixture
async def test_workflow(db_session: AsyncSession, test_user: User) -> Workflow:
    """Create a test workflow."""
    workflow = Workflow(id=str(uuid4()), user_id=test_user.id, name="Watch design file")
    db_session.add(workflow)
    await db_session.commit()
    await db_session.refresh(workflow)
    return workflow


@pytest_asyncio.fixture
async def test_execution(
    db_session: AsyncSession,
    test_user: User,
    test_workflow: Workflow,
) -> Execution:
    """Create a running execution of the test workflow."""
    execution = Execution(
        id=str(uuid4()),
        workflow_id=test_workflow.id,
        user_id=test_user.id,
        status=ExecutionStatus.RUNNING,
    )
    db_session.add(execution)
    await db_session.commit()
    await db_session.refresh(execution)
    return execution


@pytest.fixture
def encryption() -> ConfigEncryption:
    """Create encryption instance."""
    return ConfigEncryption(TEST_ENCRYPTION_KEY)


@pytest.fixture
def make_integration(
    db_session: AsyncSession,
    test_user: User,
    encryption: ConfigEncryption,
) -> Callable[..., Any]:
    """Factory storing a Figma integration with the given config."""

    async def make(config: dict[str, Any], user_id: str | None = None) -> Integration:
        integration = Integration(
            id=str(uuid4()),
            user_id=user_id or test_user.id,
            type="figma",
            name="Figma org",
            encrypted_config=encryption.encrypt(config),
        )
        db_session.add(integration)
        await db_session.commit()
        await db_session.refresh(integration)
        return integration

    return make


@pytest_asyncio.fixture
async def figma_integration(make_integration) -> Integration:
    """A connected Figma integration whose token is still valid."""
    return await make_integration(
        {
            "clientId": "client-abc",
            "clientSecret": "secret-xyz",
            "accessToken": "access-1",
            "refreshToken": "refresh-1",
            "expiresAt": str(FAR_FUTURE_MS),
            "orgId": "org-1",
        }
    )
