"""Tests for per-integration locking."""

import asyncio

import pytest

from changewatch.core.locks import IntegrationLocks


class TestIntegrationLocks:
    """Tests for IntegrationLocks."""

    @pytest.mark.asyncio
    async def test_same_integration_is_serialized(self):
        locks = IntegrationLocks()
        active = 0
        max_active = 0

        async def critical() -> None:
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.01)
            active -= 1

        await asyncio.gather(
            *(locks.with_integration_lock("int-1", critical) for _ in range(5))
        )

        assert max_active == 1

    @pytest.mark.asyncio
    async def test_different_integrations_run_concurrently(self):
        locks = IntegrationLocks()
        both_inside = asyncio.Event()
        inside: set[str] = set()

        async def critical(integration_id: str) -> None:
            inside.add(integration_id)
            if len(inside) == 2:
                both_inside.set()
            await asyncio.wait_for(both_inside.wait(), timeout=1)

        await asyncio.gather(
            locks.with_integration_lock("int-1", lambda: critical("int-1")),
            locks.with_integration_lock("int-2", lambda: critical("int-2")),
        )

        assert inside == {"int-1", "int-2"}

    @pytest.mark.asyncio
    async def test_returns_result_and_releases(self):
        locks = IntegrationLocks()

        async def compute() -> int:
            assert locks.is_locked("int-1")
            return 42

        assert await locks.with_integration_lock("int-1", compute) == 42
        assert not locks.is_locked("int-1")
        assert locks._locks == {}

    @pytest.mark.asyncio
    async def test_releases_on_error(self):
        locks = IntegrationLocks()

        async def boom() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await locks.with_integration_lock("int-1", boom)

        assert not locks.is_locked("int-1")
