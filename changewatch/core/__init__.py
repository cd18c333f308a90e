"""Core layer - Errors, encryption, locking, recording and diffing."""

from changewatch.core.change_detector import compute_new_items, dedupe_by_id
from changewatch.core.encryption import ConfigEncryption
from changewatch.core.errors import ChangewatchError
from changewatch.core.locks import IntegrationLocks, get_integration_locks
from changewatch.core.step_recorder import StepContext, StepExecutionRecorder, StepResult

__all__ = [
    "ChangewatchError",
    "ConfigEncryption",
    "IntegrationLocks",
    "StepContext",
    "StepExecutionRecorder",
    "StepResult",
    "compute_new_items",
    "dedupe_by_id",
    "get_integration_locks",
]
