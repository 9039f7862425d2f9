"""Tests for ScraperManager retries, timeouts, batching and health checks."""

import pytest

from conftest import ScriptedStrategy, make_snapshot
from models import Platform
from services.errors import AccountNotFoundError, TransientPlatformError
from services.scraper_manager import ScraperConfig, ScraperManager


def _manager(kick=None, tiktok=None, **config):
    config.setdefault('retry_delay', 0)
    config.setdefault('batch_pause', 0)
    config.setdefault('timeout', 1.0)
    strategies = {
        Platform.KICK: kick or ScriptedStrategy(Platform.KICK),
        Platform.TIKTOK: tiktok or ScriptedStrategy(Platform.TIKTOK),
    }
    return ScraperManager(ScraperConfig(**config), strategies)


class TestCheckStatus:
    @pytest.mark.asyncio
    async def test_returns_snapshot_on_success(self):
        kick = ScriptedStrategy(Platform.KICK, [make_snapshot(native_id="alpha", title="Live!")])
        manager = _manager(kick)
        await manager.init()

        snapshot = await manager.check_status(Platform.KICK, "alpha")

        assert snapshot.is_live is True
        assert snapshot.title == "Live!"
        assert kick.calls == ["alpha"]

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        kick = ScriptedStrategy(Platform.KICK, [TransientPlatformError("flaky"), True])
        manager = _manager(kick, max_retries=3)
        await manager.init()

        snapshot = await manager.check_status(Platform.KICK, "alpha")

        assert snapshot.is_live is True
        assert len(kick.calls) == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_none(self):
        kick = ScriptedStrategy(Platform.KICK, [TransientPlatformError("down")] * 3)
        manager = _manager(kick, max_retries=3)
        await manager.init()

        assert await manager.check_status(Platform.KICK, "alpha") is None
        assert len(kick.calls) == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        kick = ScriptedStrategy(Platform.KICK, [AccountNotFoundError("ghost", "kick")])
        manager = _manager(kick, max_retries=3)
        await manager.init()

        assert await manager.check_status(Platform.KICK, "ghost") is None
        assert kick.calls == ["ghost"]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failed_attempt(self):
        kick = ScriptedStrategy(Platform.KICK, delay=0.5)
        manager = _manager(kick, max_retries=2, timeout=0.05)
        await manager.init()

        assert await manager.check_status(Platform.KICK, "slow") is None
        assert len(kick.calls) == 2

    @pytest.mark.asyncio
    async def test_not_running_returns_none(self):
        kick = ScriptedStrategy(Platform.KICK, [True])
        manager = _manager(kick)

        assert await manager.check_status(Platform.KICK, "alpha") is None
        assert kick.calls == []

    @pytest.mark.asyncio
    async def test_disabled_platform_returns_none(self):
        kick = ScriptedStrategy(Platform.KICK, [True])
        manager = _manager(kick, enabled={Platform.TIKTOK})
        await manager.init()

        assert await manager.check_status(Platform.KICK, "alpha") is None
        assert kick.calls == []

    @pytest.mark.asyncio
    async def test_api_platform_is_not_scraped(self):
        manager = _manager()
        await manager.init()

        assert await manager.check_status(Platform.TWITCH, "alpha") is None


class TestCheckMultiple:
    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_batch_size(self):
        kick = ScriptedStrategy(Platform.KICK, [True] * 10, delay=0.01)
        manager = _manager(kick, batch_size=3)
        await manager.init()

        snapshots = await manager.check_multiple([(Platform.KICK, f"user{i}") for i in range(10)])

        assert len(snapshots) == 10
        assert kick.max_in_flight == 3
        assert kick.calls == [f"user{i}" for i in range(10)]

    @pytest.mark.asyncio
    async def test_failed_checks_are_skipped(self):
        kick = ScriptedStrategy(Platform.KICK, [True, AccountNotFoundError("b"), False])
        manager = _manager(kick, batch_size=1)
        await manager.init()

        snapshots = await manager.check_multiple([(Platform.KICK, "a"), (Platform.KICK, "b"), (Platform.KICK, "c")])

        assert [s.native_id for s in snapshots] == ["a", "c"]


class TestLifecycleAndHealth:
    @pytest.mark.asyncio
    async def test_close_closes_strategies(self):
        kick, tiktok = ScriptedStrategy(Platform.KICK), ScriptedStrategy(Platform.TIKTOK)
        manager = _manager(kick, tiktok)
        await manager.init()

        await manager.close()

        assert kick.closed and tiktok.closed
        assert not manager.is_initialized()

    def test_update_config_and_copy(self):
        manager = _manager()

        manager.update_config(max_retries=5)
        config = manager.get_config()
        config.enabled.clear()

        assert manager.config.max_retries == 5
        assert manager.config.enabled == {Platform.KICK, Platform.TIKTOK}

    @pytest.mark.asyncio
    async def test_health_check_reports_each_platform(self):
        kick = ScriptedStrategy(Platform.KICK, [AccountNotFoundError("test_user_health_check")])
        tiktok = ScriptedStrategy(Platform.TIKTOK, [RuntimeError("browser crashed")])
        manager = _manager(kick, tiktok)
        await manager.init()

        health = await manager.health_check()

        assert health == {'kick': True, 'tiktok': False, 'overall': False}

    @pytest.mark.asyncio
    async def test_health_check_all_good(self):
        manager = _manager(enabled={Platform.KICK})
        await manager.init()

        health = await manager.health_check()

        assert health == {'kick': True, 'tiktok': True, 'overall': True}
