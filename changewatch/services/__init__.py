"""Services layer - Business logic and persistence."""

from changewatch.services.base_data_service import BaseDataService
from changewatch.services.execution_log_service import ExecutionLogService
from changewatch.services.execution_service import ExecutionService
from changewatch.services.integration_service import IntegrationService
from changewatch.services.oauth_service import OAuthService
from changewatch.services.workflow_service import WorkflowService

__all__ = [
    "BaseDataService",
    "ExecutionLogService",
    "ExecutionService",
    "IntegrationService",
    "OAuthService",
    "WorkflowService",
]
