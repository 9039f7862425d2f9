import asyncio
import logging
from typing import Dict, Optional, Tuple

import aiohttp

from models import AccountIdentity, Platform, StatusSnapshot
from services.errors import AccountNotFoundError, ConfigurationError, PlatformError, TransientPlatformError
from .api_client import OfficialApiClient, parse_timestamp
from .token_cache import BearerTokenCache

logger = logging.getLogger(__name__)


class TwitchPlatform(OfficialApiClient):
    platform = Platform.TWITCH
    TOKEN_URL = 'https://id.twitch.tv/oauth2/token'
    API_URL = 'https://api.twitch.tv/helix'

    def __init__(self, client_id: Optional[str], client_secret: Optional[str],
                 token_cache: Optional[BearerTokenCache] = None, **kwargs):
        super().__init__(**kwargs)
        if not client_id or not client_secret:
            raise ConfigurationError("Missing TWITCH_CLIENT_ID or TWITCH_CLIENT_SECRET")
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_cache = token_cache or BearerTokenCache(self.request_access_token)

    async def request_access_token(self) -> Tuple[str, float]:
        """Get new app access token from Twitch (client credentials flow)"""
        await self.ensure_session()
        params = {
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'grant_type': 'client_credentials'
        }
        try:
            async with self.session.post(self.TOKEN_URL, params=params, timeout=self.timeout) as response:
                if response.status != 200:
                    error_data = await response.text()
                    message = f"Error getting Twitch token: {response.status} - {error_data[:200]}"
                    if response.status == 429 or response.status >= 500:
                        raise TransientPlatformError(message, self.platform.value, response.status)
                    raise PlatformError(message, self.platform.value)
                data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientPlatformError(f"Error getting Twitch token: {e}", self.platform.value) from e

        logger.info("Successfully refreshed Twitch token")
        return data['access_token'], float(data.get('expires_in', 3600))

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self.token_cache.get_token()
        return {
            'Client-ID': self.client_id,
            'Authorization': f'Bearer {token}'
        }

    async def _handle_unauthorized(self) -> None:
        logger.info("Twitch token rejected, refreshing...")
        self.token_cache.invalidate()

    async def get_identity(self, handle: str) -> AccountIdentity:
        data = await self.get_json(f"{self.API_URL}/users", {'login': handle}, handle)
        users = data.get('data') or []
        if not users:
            raise AccountNotFoundError(handle, self.platform.value)
        user = users[0]

        followers = 0
        try:
            follower_data = await self.get_json(
                f"{self.API_URL}/channels/followers", {'broadcaster_id': user['id']}, handle
            )
            followers = int(follower_data.get('total') or 0)
        except PlatformError as e:
            logger.warning(f"Could not get follower count for {handle}: {e}")

        return AccountIdentity(
            native_id=user['id'],
            handle=user['login'],
            display_name=user.get('display_name') or user['login'],
            avatar_url=user.get('profile_image_url'),
            followers=followers
        )

    async def get_live_status(self, native_id: str, handle: str) -> StatusSnapshot:
        data = await self.get_json(f"{self.API_URL}/streams", {'user_id': native_id}, handle)
        streams = data.get('data') or []
        if not streams:
            return StatusSnapshot(
                platform=self.platform,
                native_id=native_id,
                is_live=False,
                stream_url=self.platform.profile_url(handle)
            )

        stream = streams[0]
        thumbnail = stream.get('thumbnail_url')
        if thumbnail:
            thumbnail = thumbnail.replace('{width}', '1920').replace('{height}', '1080')

        return StatusSnapshot(
            platform=self.platform,
            native_id=native_id,
            is_live=True,
            title=stream.get('title') or None,
            stream_url=self.platform.profile_url(stream.get('user_login') or handle),
            thumbnail_url=thumbnail,
            viewer_count=stream.get('viewer_count'),
            started_at=parse_timestamp(stream.get('started_at')),
            category=stream.get('game_name') or None
        )
