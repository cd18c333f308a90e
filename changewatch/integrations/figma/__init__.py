"""Figma integration: OAuth and activity log access."""

from changewatch.integrations.figma.activity import FigmaActivityClient, extract_file_key
from changewatch.integrations.figma.oauth import FigmaIntegration

__all__ = [
    "FigmaActivityClient",
    "FigmaIntegration",
    "extract_file_key",
]
