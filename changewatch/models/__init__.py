"""Data models - SQLModel entities and wire schemas."""

from changewatch.models.activity import ActivityLogEvent, DeltaResult, FetchResult
from changewatch.models.base_data import (
    BaseData,
    BaseDataCreate,
    BaseDataRead,
    BaseDataSummary,
    BaseDataUpdate,
)
from changewatch.models.execution import (
    Execution,
    ExecutionCreate,
    ExecutionRead,
    ExecutionStatus,
    ExecutionStepLog,
    ExecutionStepLogRead,
    StepRunRequest,
    StepStatus,
)
from changewatch.models.integration import (
    FigmaConfig,
    Integration,
    IntegrationCreate,
    IntegrationRead,
    ProviderConfig,
    TokenState,
    parse_integration_config,
)
from changewatch.models.user import TokenPayload, User
from changewatch.models.workflow import Workflow

__all__ = [
    "ActivityLogEvent",
    "BaseData",
    "BaseDataCreate",
    "BaseDataRead",
    "BaseDataSummary",
    "BaseDataUpdate",
    "DeltaResult",
    "Execution",
    "ExecutionCreate",
    "ExecutionRead",
    "ExecutionStatus",
    "ExecutionStepLog",
    "ExecutionStepLogRead",
    "FetchResult",
    "FigmaConfig",
    "Integration",
    "IntegrationCreate",
    "IntegrationRead",
    "ProviderConfig",
    "StepRunRequest",
    "StepStatus",
    "TokenPayload",
    "TokenState",
    "User",
    "Workflow",
    "parse_integration_config",
]
