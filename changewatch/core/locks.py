"""Per-integration locking.

Concurrent refreshes of the same integration can both succeed upstream while
only the last write survives locally, leaving a token the provider already
invalidated. Token writes therefore go through a lock keyed by integration
id; reads stay lock-free.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class IntegrationLocks:
    """Registry of one asyncio.Lock per integration id.

    Locks are process-local and created lazily. A lock is dropped again once
    nobody holds or waits for it, so the registry does not grow with the
    number of integrations ever refreshed.

    Example usage:
        locks = IntegrationLocks()
        async with locks.hold(integration.id):
            config = await integration_service.get_config(integration.id, user_id)
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, integration_id: str) -> AsyncIterator[None]:
        """Hold the lock for an integration for the duration of the block."""
        lock = self._locks.setdefault(integration_id, asyncio.Lock())
        self._waiters[integration_id] = self._waiters.get(integration_id, 0) + 1

        if lock.locked():
            logger.debug("integration_lock_contended", integration_id=integration_id)

        try:
            async with lock:
                yield
        finally:
            remaining = self._waiters[integration_id] - 1
            if remaining:
                self._waiters[integration_id] = remaining
            else:
                del self._waiters[integration_id]
                del self._locks[integration_id]

    async def with_integration_lock(
        self,
        integration_id: str,
        fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``fn`` while holding the integration's lock."""
        async with self.hold(integration_id):
            return await fn()

    def is_locked(self, integration_id: str) -> bool:
        """Check whether an integration currently has a writer."""
        lock = self._locks.get(integration_id)
        return lock is not None and lock.locked()


_integration_locks = IntegrationLocks()


def get_integration_locks() -> IntegrationLocks:
    """Get the process-wide lock registry."""
    return _integration_locks
