"""Tests for the official API clients (Twitch, YouTube) with stubbed HTTP."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import aiohttp
import pytest

from models import Platform
from platforms.api_client import parse_timestamp
from platforms.token_cache import BearerTokenCache
from platforms.twitch_platform import TwitchPlatform
from platforms.youtube_platform import YouTubePlatform
from services.errors import AccountNotFoundError, ConfigurationError, PlatformError, TransientPlatformError


class FakeResponse:
    def __init__(self, status: int, payload=None):
        self.status = status
        self.payload = payload or {}

    async def json(self):
        return self.payload

    async def text(self):
        return str(self.payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Serves queued responses (or raises queued exceptions) for GET requests."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append((url, params, headers))
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        self.closed = True


def _twitch(responses, **kwargs):
    kwargs.setdefault('retry_delay', 0)
    token_fetch = AsyncMock(side_effect=[("tok-1", 3600), ("tok-2", 3600)])
    client = TwitchPlatform("client", "secret", token_cache=BearerTokenCache(token_fetch), **kwargs)
    client.request_access_token = token_fetch
    client.session = FakeSession(responses)
    return client


class TestParseTimestamp:
    def test_zulu_suffix(self):
        assert parse_timestamp("2026-05-01T10:00:00Z") == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)

    def test_invalid_and_empty(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None


class TestTwitchPlatform:
    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError):
            TwitchPlatform(None, "secret")

    @pytest.mark.asyncio
    async def test_live_stream(self):
        client = _twitch([FakeResponse(200, {'data': [{
            'user_login': 'shroud',
            'title': 'Ranked',
            'viewer_count': 31000,
            'game_name': 'Valorant',
            'started_at': '2026-05-01T10:00:00Z',
            'thumbnail_url': 'https://cdn/live_{width}x{height}.jpg',
        }]})])

        snapshot = await client.get_live_status("37402112", "shroud")

        assert snapshot.is_live is True
        assert snapshot.native_id == "37402112"
        assert snapshot.title == "Ranked"
        assert snapshot.category == "Valorant"
        assert snapshot.thumbnail_url == "https://cdn/live_1920x1080.jpg"
        assert snapshot.started_at == datetime(2026, 5, 1, 10, 0, tzinfo=timezone.utc)
        url, params, headers = client.session.requests[0]
        assert params == {'user_id': '37402112'}
        assert headers['Authorization'] == 'Bearer tok-1'
        assert headers['Client-ID'] == 'client'

    @pytest.mark.asyncio
    async def test_offline_stream(self):
        client = _twitch([FakeResponse(200, {'data': []})])

        snapshot = await client.get_live_status("1", "shroud")

        assert snapshot.is_live is False
        assert snapshot.stream_url == "https://twitch.tv/shroud"

    @pytest.mark.asyncio
    async def test_unauthorized_refreshes_token_once(self):
        client = _twitch([FakeResponse(401), FakeResponse(200, {'data': []})], max_retries=1)

        snapshot = await client.get_live_status("1", "shroud")

        assert snapshot.is_live is False
        assert client.request_access_token.await_count == 2
        assert client.session.requests[1][2]['Authorization'] == 'Bearer tok-2'

    @pytest.mark.asyncio
    async def test_repeated_unauthorized_is_an_error(self):
        client = _twitch([FakeResponse(401), FakeResponse(401)])

        with pytest.raises(PlatformError):
            await client.get_live_status("1", "shroud")

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        client = _twitch([FakeResponse(503), aiohttp.ClientConnectionError(), FakeResponse(200, {'data': []})],
                         max_retries=3)

        snapshot = await client.get_live_status("1", "shroud")

        assert snapshot.is_live is False
        assert len(client.session.requests) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted_raise_transient(self):
        client = _twitch([FakeResponse(500), FakeResponse(429)], max_retries=2)

        with pytest.raises(TransientPlatformError):
            await client.get_live_status("1", "shroud")

    @pytest.mark.asyncio
    async def test_identity_with_followers(self):
        client = _twitch([
            FakeResponse(200, {'data': [{'id': '99', 'login': 'shroud', 'display_name': 'Shroud',
                                         'profile_image_url': 'https://cdn/a.png'}]}),
            FakeResponse(200, {'total': 1234}),
        ])

        identity = await client.get_identity("shroud")

        assert identity.native_id == "99"
        assert identity.display_name == "Shroud"
        assert identity.followers == 1234

    @pytest.mark.asyncio
    async def test_identity_not_found(self):
        client = _twitch([FakeResponse(200, {'data': []})])

        with pytest.raises(AccountNotFoundError):
            await client.get_identity("ghost")


class TestYouTubePlatform:
    def _client(self, responses):
        client = YouTubePlatform("key", retry_delay=0)
        client.session = FakeSession(responses)
        return client

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            YouTubePlatform("")

    @pytest.mark.asyncio
    async def test_live_with_details(self):
        client = self._client([
            FakeResponse(200, {'items': [{'id': {'videoId': 'abc'},
                                          'snippet': {'title': 'Launch stream',
                                                      'thumbnails': {'high': {'url': 'https://i.ytimg/abc.jpg'}}}}]}),
            FakeResponse(200, {'items': [{'liveStreamingDetails': {
                'concurrentViewers': '812', 'actualStartTime': '2026-05-01T09:30:00Z'}}]}),
        ])

        snapshot = await client.get_live_status("UC123", "nasa")

        assert snapshot.platform is Platform.YOUTUBE
        assert snapshot.is_live is True
        assert snapshot.stream_url == "https://www.youtube.com/watch?v=abc"
        assert snapshot.viewer_count == 812
        assert snapshot.started_at == datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)
        assert client.session.requests[0][1]['key'] == 'key'

    @pytest.mark.asyncio
    async def test_missing_details_still_live(self):
        client = self._client([
            FakeResponse(200, {'items': [{'id': {'videoId': 'abc'}, 'snippet': {'title': 'Launch'}}]}),
            FakeResponse(403, {'error': 'quota'}),
        ])

        snapshot = await client.get_live_status("UC123", "nasa")

        assert snapshot.is_live is True
        assert snapshot.viewer_count is None

    @pytest.mark.asyncio
    async def test_identity_by_handle(self):
        client = self._client([FakeResponse(200, {'items': [{
            'id': 'UC123', 'snippet': {'title': 'NASA'}, 'statistics': {'subscriberCount': '5000'}}]})])

        identity = await client.get_identity("@nasa")

        assert identity.native_id == "UC123"
        assert identity.handle == "nasa"
        assert identity.followers == 5000
        assert client.session.requests[0][1]['forHandle'] == '@nasa'
