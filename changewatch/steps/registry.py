"""Step registry.

Maps node types to step classes. Steps hold request-scoped services, so the
registry stores classes and builds a fresh instance per invocation.
"""

import structlog

from changewatch.core.errors import ValidationError
from changewatch.steps.base import BaseStep, StepServices

logger = structlog.get_logger()


class StepRegistryError(Exception):
    """Error in step registry operations."""


class StepRegistry:
    """Central registry for workflow steps.

    Example usage:
        registry = StepRegistry()
        registry.register(GetActivityLogsStep)

        step = registry.create("figma/get-activity-logs", services)
        result = await recorder.record(context, step, raw_input)
    """

    def __init__(self) -> None:
        self._steps: dict[str, type[BaseStep]] = {}

    def register(self, step_class: type[BaseStep]) -> None:
        """Register a step class.

        Raises:
            StepRegistryError: If the node type is empty or already taken
        """
        node_type = step_class.node_type
        if not node_type:
            raise StepRegistryError(f"{step_class.__name__} has no node_type")
        if node_type in self._steps:
            raise StepRegistryError(f"Step '{node_type}' already registered")

        self._steps[node_type] = step_class
        logger.debug("step_registered", node_type=node_type)

    def create(self, node_type: str, services: StepServices) -> BaseStep:
        """Instantiate the step registered for a node type.

        Raises:
            ValidationError: If no step is registered for it
        """
        step_class = self._steps.get(node_type)
        if step_class is None:
            raise ValidationError(f"Unknown step type: {node_type}")
        return step_class(services)

    def list_node_types(self) -> list[str]:
        return sorted(self._steps)

    def load_builtin_steps(self) -> int:
        """Register the steps shipped with the service."""
        from changewatch.steps.figma.detect_change import DetectChangeStep
        from changewatch.steps.figma.get_activity_logs import GetActivityLogsStep

        builtin_steps: list[type[BaseStep]] = [
            GetActivityLogsStep,
            DetectChangeStep,
        ]

        for step_class in builtin_steps:
            self.register(step_class)

        logger.info("builtin_steps_loaded", count=len(builtin_steps))
        return len(builtin_steps)


_registry: StepRegistry | None = None


def get_step_registry() -> StepRegistry:
    """Get or create the singleton step registry with builtin steps loaded."""
    global _registry
    if _registry is None:
        _registry = StepRegistry()
        _registry.load_builtin_steps()
    return _registry
