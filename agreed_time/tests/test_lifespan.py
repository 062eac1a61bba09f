"""Tests for lifespan management."""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch


class TestLifespanResources:
    """Test LifespanResources dataclass."""

    def test_lifespan_resources_defaults(self):
        from agreed_time.lifespan import LifespanResources

        resources = LifespanResources()
        assert resources.stop_event is None
        assert resources.background_tasks == []
        assert resources.db_enabled is False


class TestInitDatabase:
    """Test init_database function."""

    @pytest.mark.asyncio
    async def test_skipped_when_disabled(self, settings):
        from agreed_time.lifespan import init_database

        with patch("agreed_time.lifespan.db.init_pool", new=AsyncMock()) as init_pool:
            assert await init_database(settings) is False
            init_pool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_initializes_pool(self, settings):
        from agreed_time.lifespan import init_database

        settings.features.database = True
        with patch("agreed_time.lifespan.db.init_pool", new=AsyncMock()) as init_pool:
            assert await init_database(settings) is True
            init_pool.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, settings):
        from agreed_time.lifespan import init_database

        settings.features.database = True
        with patch("agreed_time.lifespan.db.init_pool", new=AsyncMock(side_effect=OSError("down"))):
            assert await init_database(settings) is False


class TestSetupResources:
    """Test setup_resources function."""

    @pytest.mark.asyncio
    async def test_no_scheduler_without_database(self, settings):
        from agreed_time.lifespan import setup_resources

        settings.features.cleanup = True
        with patch("agreed_time.lifespan.start_expiry_scheduler", new=AsyncMock()) as start:
            resources = await setup_resources(settings)

            assert resources.db_enabled is False
            assert resources.background_tasks == []
            start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_starts_scheduler_with_database(self, settings):
        from agreed_time.lifespan import setup_resources

        settings.features.database = True
        settings.features.cleanup = True
        limiter = MagicMock()
        task = MagicMock()
        with patch("agreed_time.lifespan.db.init_pool", new=AsyncMock()):
            with patch(
                "agreed_time.lifespan.start_expiry_scheduler", new=AsyncMock(return_value=[task])
            ) as start:
                resources = await setup_resources(settings, limiter)

                assert resources.db_enabled is True
                assert resources.background_tasks == [task]
                assert isinstance(resources.stop_event, asyncio.Event)
                start.assert_awaited_once_with(resources.stop_event, settings, limiter)


class TestCleanupResources:
    """Test cleanup_resources function."""

    @pytest.mark.asyncio
    async def test_sets_stop_event_and_waits(self):
        from agreed_time.lifespan import LifespanResources, cleanup_resources

        stop_event = asyncio.Event()

        async def worker():
            await stop_event.wait()

        task = asyncio.create_task(worker())
        resources = LifespanResources(stop_event=stop_event, background_tasks=[task])

        await cleanup_resources(resources)

        assert stop_event.is_set()
        assert task.done()

    @pytest.mark.asyncio
    async def test_cancels_tasks_that_ignore_stop(self):
        from agreed_time.lifespan import LifespanResources, cleanup_resources

        task = asyncio.create_task(asyncio.sleep(60))
        resources = LifespanResources(stop_event=asyncio.Event(), background_tasks=[task])

        await cleanup_resources(resources, grace_seconds=0.05)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_closes_pool_when_enabled(self):
        from agreed_time.lifespan import LifespanResources, cleanup_resources

        with patch("agreed_time.lifespan.db.close_pool", new=AsyncMock()) as close_pool:
            await cleanup_resources(LifespanResources(db_enabled=True))
            close_pool.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skips_pool_when_disabled(self):
        from agreed_time.lifespan import LifespanResources, cleanup_resources

        with patch("agreed_time.lifespan.db.close_pool", new=AsyncMock()) as close_pool:
            await cleanup_resources(LifespanResources())
            close_pool.assert_not_awaited()
