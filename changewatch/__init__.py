"""Changewatch: activity log change detection for OAuth-connected providers."""

__version__ = "0.1.0"
