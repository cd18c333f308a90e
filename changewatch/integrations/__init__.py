"""Integrations module.

Each provider has its own folder with:
- oauth.py: OAuth endpoints and token calls
- the provider's data API client(s)
- __init__.py: Exports
"""

from changewatch.integrations.registry import IntegrationRegistry, get_integration_registry

__all__ = [
    "IntegrationRegistry",
    "get_integration_registry",
]
