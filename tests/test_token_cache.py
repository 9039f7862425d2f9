"""Tests for BearerTokenCache single-flight refresh."""

import asyncio

import pytest

from platforms.token_cache import BearerTokenCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _fetcher(expires_in: float = 3600, delay: float = 0.0):
    calls = []

    async def fetch():
        calls.append(1)
        if delay:
            await asyncio.sleep(delay)
        return f"token-{len(calls)}", expires_in

    return fetch, calls


class TestBearerTokenCache:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self):
        fetch, calls = _fetcher(delay=0.01)
        cache = BearerTokenCache(fetch)

        tokens = await asyncio.gather(*(cache.get_token() for _ in range(10)))

        assert tokens == ["token-1"] * 10
        assert len(calls) == 1
        assert cache.refresh_count == 1

    @pytest.mark.asyncio
    async def test_cached_token_reused_while_valid(self):
        fetch, calls = _fetcher()
        clock = FakeClock()
        cache = BearerTokenCache(fetch, clock=clock)

        await cache.get_token()
        clock.now += 3000
        token = await cache.get_token()

        assert token == "token-1"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_refreshes_inside_margin_before_expiry(self):
        fetch, calls = _fetcher(expires_in=3600)
        clock = FakeClock()
        cache = BearerTokenCache(fetch, refresh_margin=60, clock=clock)

        await cache.get_token()
        clock.now += 3600 - 59
        assert cache.is_valid is False
        token = await cache.get_token()

        assert token == "token-2"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self):
        fetch, calls = _fetcher()
        cache = BearerTokenCache(fetch)

        await cache.get_token()
        cache.invalidate()
        token = await cache.get_token()

        assert token == "token-2"

    @pytest.mark.asyncio
    async def test_failed_refresh_propagates_and_next_call_retries(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("auth server down")
            return "token-ok", 3600

        cache = BearerTokenCache(flaky)

        with pytest.raises(RuntimeError):
            await cache.get_token()
        assert await cache.get_token() == "token-ok"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_refresh(self):
        fetch, calls = _fetcher(delay=0.05)
        cache = BearerTokenCache(fetch)

        impatient = asyncio.create_task(cache.get_token())
        patient = asyncio.create_task(cache.get_token())
        await asyncio.sleep(0.01)
        impatient.cancel()

        assert await patient == "token-1"
        assert len(calls) == 1
