import logging
from typing import Any, Dict, Optional

from models import AccountIdentity, Platform, StatusSnapshot
from services.errors import AccountNotFoundError, ConfigurationError, PlatformError
from .api_client import OfficialApiClient, parse_timestamp

logger = logging.getLogger(__name__)


class YouTubePlatform(OfficialApiClient):
    """YouTube Data API v3 client; authenticates with an API key"""

    platform = Platform.YOUTUBE
    API_URL = 'https://www.googleapis.com/youtube/v3'

    def __init__(self, api_key: Optional[str], **kwargs):
        super().__init__(**kwargs)
        if not api_key:
            raise ConfigurationError("Missing YOUTUBE_API_KEY")
        self.api_key = api_key

    async def _api_get(self, resource: str, params: Dict[str, Any], handle: str) -> Dict[str, Any]:
        return await self.get_json(f"{self.API_URL}/{resource}", {**params, 'key': self.api_key}, handle)

    async def get_identity(self, handle: str) -> AccountIdentity:
        data = await self._api_get('channels', {
            'part': 'snippet,statistics',
            'forHandle': handle if handle.startswith('@') else f"@{handle}"
        }, handle)
        items = data.get('items') or []
        if not items:
            raise AccountNotFoundError(handle, self.platform.value)

        channel = items[0]
        snippet = channel.get('snippet', {})
        statistics = channel.get('statistics', {})
        thumbnails = snippet.get('thumbnails', {})
        avatar = (thumbnails.get('high') or thumbnails.get('default') or {}).get('url')

        return AccountIdentity(
            native_id=channel['id'],
            handle=handle.lstrip('@'),
            display_name=snippet.get('title') or handle,
            avatar_url=avatar,
            followers=int(statistics.get('subscriberCount') or 0)
        )

    async def get_live_status(self, native_id: str, handle: str) -> StatusSnapshot:
        data = await self._api_get('search', {
            'part': 'snippet',
            'channelId': native_id,
            'eventType': 'live',
            'type': 'video',
            'maxResults': 1
        }, handle)
        items = data.get('items') or []
        if not items:
            return StatusSnapshot(
                platform=self.platform,
                native_id=native_id,
                is_live=False,
                stream_url=self.platform.profile_url(handle)
            )

        item = items[0]
        video_id = item.get('id', {}).get('videoId')
        snippet = item.get('snippet', {})
        thumbnails = snippet.get('thumbnails', {})
        thumbnail = (thumbnails.get('high') or thumbnails.get('medium') or thumbnails.get('default') or {}).get('url')

        viewer_count = None
        started_at = None
        if video_id:
            details = await self._live_details(video_id, handle)
            if details.get('concurrentViewers'):
                viewer_count = int(details['concurrentViewers'])
            started_at = parse_timestamp(details.get('actualStartTime'))

        return StatusSnapshot(
            platform=self.platform,
            native_id=native_id,
            is_live=True,
            title=snippet.get('title') or None,
            stream_url=f"https://www.youtube.com/watch?v={video_id}" if video_id else self.platform.profile_url(handle),
            thumbnail_url=thumbnail,
            viewer_count=viewer_count,
            started_at=started_at
        )

    async def _live_details(self, video_id: str, handle: str) -> Dict[str, Any]:
        """Viewer count and start time; missing details never fail the check"""
        try:
            data = await self._api_get('videos', {'part': 'liveStreamingDetails', 'id': video_id}, handle)
        except PlatformError as e:
            logger.warning(f"Could not get live details for YouTube video {video_id}: {e}")
            return {}
        items = data.get('items') or []
        return items[0].get('liveStreamingDetails', {}) if items else {}
