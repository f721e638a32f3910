"""Integration tests for pooled execution under concurrent tool calls.

The real DatabaseService and BoundedExecutor run against a fake pool that
raises PoolError, like psycopg2's, if more than its maximum is checked out.
"""

import asyncio

import pytest

from pg_readonly_mcp.models.error_types import PoolExhaustedError
from pg_readonly_mcp.services.database_service import DatabaseService
from pg_readonly_mcp.services.query_executor import BoundedExecutor


@pytest.mark.integration
class TestConcurrentExecution:
    """Concurrent callers share a bounded pool."""

    @pytest.mark.asyncio
    async def test_fifty_concurrent_queries_never_exceed_pool(self, db_config, fake_pool_factory):
        """Test that 50 concurrent calls on a pool of 5 all succeed within the pool maximum."""
        service = DatabaseService(db_config, pool_size=5, pool_timeout=10)
        service.pool = fake_pool_factory(maxconn=5, rows=[{'n': 1}], delay=0.01)
        executor = BoundedExecutor(service)

        results = await asyncio.gather(*[
            executor.execute_sql(f"SELECT {i} AS n") for i in range(50)
        ])

        assert len(results) == 50
        assert all(result.row_count == 1 for result in results)
        assert service.pool.peak <= 5
        assert len(service.pool.executed) == 50
        assert service.pool.checked_out == 0
        assert service.in_use == 0

    @pytest.mark.asyncio
    async def test_pool_exhaustion_times_out(self, db_config, fake_pool_factory):
        """Test that waiting longer than pool_timeout raises PoolExhaustedError."""
        service = DatabaseService(db_config, pool_size=1, pool_timeout=0.05)
        service.pool = fake_pool_factory(maxconn=1, delay=0.5)

        results = await asyncio.gather(
            service.run_readonly_query("SELECT 1"),
            service.run_readonly_query("SELECT 2"),
            return_exceptions=True
        )

        exhausted = [r for r in results if isinstance(r, PoolExhaustedError)]
        succeeded = [r for r in results if isinstance(r, dict)]
        assert len(exhausted) == 1
        assert len(succeeded) == 1
        assert exhausted[0].recoverable is True

    @pytest.mark.asyncio
    async def test_cancelled_caller_returns_connection(self, db_config, fake_pool_factory):
        """Test that cancelling a waiting task still returns its connection and slot."""
        service = DatabaseService(db_config, pool_size=2, pool_timeout=1)
        service.pool = fake_pool_factory(maxconn=2, delay=0.1)

        task = asyncio.create_task(service.run_readonly_query("SELECT 1"))
        await asyncio.sleep(0.02)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # The worker thread finishes on its own; give it time to return the connection
        for _ in range(50):
            if service.pool.checked_out == 0 and len(service.pool.returned) == 1:
                break
            await asyncio.sleep(0.02)

        assert service.pool.checked_out == 0
        assert service.in_use == 0

        # Both slots are usable again
        results = await asyncio.gather(
            service.run_readonly_query("SELECT 2"),
            service.run_readonly_query("SELECT 3")
        )
        assert len(results) == 2
        assert service.pool.peak <= 2

    @pytest.mark.asyncio
    async def test_cancel_as_slot_frees_returns_slot(self, db_config, fake_pool_factory):
        """Test that a caller cancelled in the same step its slot frees up does not keep the slot."""
        service = DatabaseService(db_config, pool_size=1, pool_timeout=1)
        service.pool = fake_pool_factory(maxconn=1)

        await service._slots.acquire()
        task = asyncio.create_task(service.run_readonly_query("SELECT 1"))
        for _ in range(3):
            await asyncio.sleep(0)

        # Hand the slot to the waiting caller and cancel it before it runs again
        service._slots.release()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert service.pool.executed == []
        result = await asyncio.wait_for(service.run_readonly_query("SELECT 2"), timeout=0.5)
        assert result['rows'] == [{'value': 1}]
        assert service.pool.checked_out == 0

    @pytest.mark.asyncio
    async def test_timed_out_waiter_leaves_slot_free(self, db_config, fake_pool_factory):
        """Test that a PoolExhaustedError never leaves a slot held."""
        service = DatabaseService(db_config, pool_size=1, pool_timeout=0.05)
        service.pool = fake_pool_factory(maxconn=1)

        await service._slots.acquire()
        with pytest.raises(PoolExhaustedError):
            await service.run_readonly_query("SELECT 1")
        service._slots.release()

        result = await service.run_readonly_query("SELECT 2")
        assert result['rows'] == [{'value': 1}]

    @pytest.mark.asyncio
    async def test_failures_release_slots(self, db_config, fake_pool_factory):
        """Test that failing queries do not leak slots."""
        import psycopg2

        service = DatabaseService(db_config, pool_size=2, pool_timeout=0.5)
        service.pool = fake_pool_factory(maxconn=2, error=psycopg2.OperationalError("boom"))

        results = await asyncio.gather(
            *[service.run_readonly_query("SELECT 1") for _ in range(10)],
            return_exceptions=True
        )
        assert not any(isinstance(r, PoolExhaustedError) for r in results)

        service.pool.error = None
        result = await service.run_readonly_query("SELECT 1")
        assert result['rows'] == [{'value': 1}]
        assert service.pool.checked_out == 0
