"""API route handlers."""

from changewatch.api.routes.base_data import router as base_data_router
from changewatch.api.routes.executions import router as executions_router
from changewatch.api.routes.integrations import router as integrations_router
from changewatch.api.routes.oauth import router as oauth_router

__all__ = [
    "base_data_router",
    "executions_router",
    "integrations_router",
    "oauth_router",
]
