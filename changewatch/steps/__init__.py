"""Workflow steps - units of work recorded inside an execution."""

from changewatch.steps.base import BaseStep, StepServices
from changewatch.steps.registry import StepRegistry, get_step_registry

__all__ = [
    "BaseStep",
    "StepRegistry",
    "StepServices",
    "get_step_registry",
]
