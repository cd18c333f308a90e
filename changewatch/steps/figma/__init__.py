"""Figma workflow steps."""

from changewatch.steps.figma.detect_change import DetectChangeStep
from changewatch.steps.figma.get_activity_logs import GetActivityLogsStep

__all__ = [
    "DetectChangeStep",
    "GetActivityLogsStep",
]
